"""Request logging for the web server."""

from __future__ import annotations

import time

from flask import Flask, g, request

from twitchong.logger import with_fields

_log = with_fields(component="http")


def install_request_logging(app: Flask) -> None:
    """Log method, path and duration of every request handled by app."""

    def start_timer() -> None:
        g._request_started = time.perf_counter()

    def log_request(exc: BaseException | None) -> None:
        started = g.pop("_request_started", None)
        duration = time.perf_counter() - started if started is not None else 0.0
        _log.info(
            "request completed",
            extra={
                "fields": {
                    "method": request.method,
                    "path": request.path,
                    "duration": duration,
                }
            },
        )

    app.before_request(start_timer)
    app.teardown_request(log_request)