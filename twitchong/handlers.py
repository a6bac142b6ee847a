"""Twitch OAuth handlers and the state store that guards them against CSRF."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass, fields
from typing import Any, Mapping

from flask import Response, request

from twitchong.logger import with_fields
from twitchong.response import respond_json

# Access tokens received from the browser, for whoever waits on them.
OAUTH_TOKENS: "queue.Queue[str]" = queue.Queue(maxsize=1)

_state_store: dict[str, bool] = {}
_state_lock = threading.Lock()

_log = with_fields(component="handlers")


@dataclass
class TwitchTokens:
    """Tokens that Twitch hands back after authorisation."""

    access_token: str = ""
    id_token: str = ""
    scope: str = ""
    state: str = ""
    token_type: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TwitchTokens":
        """Build from a mapping; raises ValueError if a present field is not a string."""
        values = {}
        for spec in fields(cls):
            value = data.get(spec.name, "")
            if not isinstance(value, str):
                raise ValueError(f"{spec.name} must be a string")
            values[spec.name] = value
        return cls(**values)


@dataclass
class TwitchError:
    """Error that Twitch reports on the callback."""

    error: str
    error_description: str
    state: str


def set_state(key: str, value: bool) -> None:
    """Record an OAuth state value."""
    with _state_lock:
        _state_store[key] = value


def get_state() -> dict[str, bool]:
    """Return the live state store."""
    return _state_store


def _take_state(key: str) -> bool:
    """Remove key from the store; whether it was there."""
    with _state_lock:
        return _state_store.pop(key, None) is not None


def _request_data() -> Mapping[str, Any]:
    if request.is_json:
        if not request.get_data():
            return {}
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValueError("request body is not a JSON object")
        return data
    return request.form


def process_tokens() -> Response:
    """Accept the tokens posted by the browser, check the state and pass the token on."""
    try:
        tokens = TwitchTokens.from_mapping(_request_data())
    except ValueError:
        return respond_json(400, {"error": "Invalid token data"})

    _log.debug(
        "tokens received",
        extra={
            "fields": {
                "scope": tokens.scope,
                "state": tokens.state,
                "token_type": tokens.token_type,
            }
        },
    )

    if not _take_state(tokens.state):
        return respond_json(400, {"error": "Invalid state parameter"})

    OAUTH_TOKENS.put(tokens.access_token)

    response = respond_json(
        200,
        {"status": "success", "message": "Authentication completed successfully"},
    )
    response.headers["HX-Redirect"] = "/"
    return response