"""JSON responses for the web server."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from typing import Any

from flask import Response

_MARSHAL_ERROR_BODY = '{"error":"Error marshalling JSON"}'


@dataclass
class ErrorResponse:
    """Body of an error answer."""

    error: str


def _encode_default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def respond_json(status: int, payload: Any) -> Response:
    """Return payload as a JSON response; a 500 answer if it cannot be encoded."""
    try:
        body = json.dumps(payload, separators=(",", ":"), default=_encode_default)
    except (TypeError, ValueError):
        return Response(_MARSHAL_ERROR_BODY, status=500, content_type="text/plain; charset=utf-8")
    return Response(body, status=status, content_type="application/json")


def respond_error(status: int, message: str) -> Response:
    """Return a JSON error response with the given status and message."""
    return respond_json(status, ErrorResponse(error=message))