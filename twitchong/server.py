"""The web server: OAuth pages, token intake and static assets."""

from __future__ import annotations

from pathlib import Path

from flask import Flask, Response, abort, request, send_file

from twitchong.config import Config
from twitchong.handlers import TwitchError, get_state, process_tokens, set_state
from twitchong.logger import with_fields
from twitchong.middleware import install_request_logging
from twitchong.response import respond_json

_STATIC_FILES = {
    "/index.js": "assets/js/index.js",
    "/index.min.css": "assets/js/index.min.css",
}

_log = with_fields(component="server")


def _static_view(relative: str):
    def serve() -> Response:
        path = Path.cwd() / relative
        if not path.is_file():
            abort(404)
        return send_file(path)

    return serve


def _twitch_callback() -> Response:
    """Handle the redirect from Twitch; errors are checked against the state store."""
    error_code = request.args.get("error", "")
    if not error_code:
        # Successful tokens arrive in the URL fragment and are posted back by the browser.
        return Response("", status=204)

    state = request.args.get("state", "")
    if get_state().pop(state, None) is None:
        return respond_json(400, {"error": "Invalid state parameter"})

    twitch_error = TwitchError(
        error=error_code,
        error_description=request.args.get("error_description", ""),
        state=state,
    )
    _log.error(f"Twitch auth error: {twitch_error}")
    return respond_json(400, twitch_error)


def create_app(config: Config) -> Flask:
    """Build the web application for the given configuration."""
    app = Flask(__name__)
    install_request_logging(app)

    for url, relative in _STATIC_FILES.items():
        app.add_url_rule(url, endpoint=url, view_func=_static_view(relative))

    app.add_url_rule("/twitch/callback", view_func=_twitch_callback, methods=["GET"])
    app.add_url_rule("/process-tokens", view_func=process_tokens, methods=["POST"])

    def index() -> Response:
        set_state(config.twitch_secret_state, True)
        return respond_json(
            200, {"client_id": config.client_id, "state": config.twitch_secret_state}
        )

    app.add_url_rule("/", view_func=index, methods=["GET"])
    return app


def start(app: Flask, config: Config) -> None:
    """Serve app on all interfaces at the configured port; failures are logged."""
    try:
        app.run(host="0.0.0.0", port=config.server_port)
    except (OSError, SystemExit) as err:
        _log.error("failed to start server", extra={"fields": {"error": str(err)}})