"""Application configuration from a .env file and the environment."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from twitchong.logger import get_logger

_UNDEFINED = "undefined"
_INTEGER = re.compile(r"[+-]?\d+")

_log = get_logger("config")


@dataclass
class Config:
    """All settings the application needs."""

    server_port: int = 8080
    log_level: str = "info"
    environment: str = "development"
    bot_user_id: str = _UNDEFINED
    oauth_token: str = _UNDEFINED
    client_id: str = _UNDEFINED
    client_secret: str = _UNDEFINED
    chat_channel_user_id: str = _UNDEFINED
    eventsub_websocket_url: str = _UNDEFINED
    twitch_secret_state: str = _UNDEFINED


def _parse_port(text: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise ValueError(f"invalid server port: {text!r}")
    return int(text)


def load() -> Config:
    """Build the configuration; a .env file in the working directory is read first.

    Variables already present in the environment win over the file.
    Raises ValueError if SERVER_PORT is not an integer.
    """
    env_file = Path(".env")
    if env_file.is_file():
        load_dotenv(env_file, override=False)
    else:
        _log.warning("Warning: .env file not found. Using environment variables only.")

    env = os.environ
    return Config(
        server_port=_parse_port(env.get("SERVER_PORT", "8080")),
        log_level=env.get("LOG_LEVEL", "info"),
        environment=env.get("APP_ENV", "development"),
        bot_user_id=env.get("BOT_USER_ID", _UNDEFINED),
        oauth_token=env.get("OAUTH_TOKEN", _UNDEFINED),
        client_id=env.get("CLIENT_ID", _UNDEFINED),
        client_secret=env.get("CLIENT_SECRET", _UNDEFINED),
        chat_channel_user_id=env.get("CHAT_CHANNEL_USER_ID", _UNDEFINED),
        eventsub_websocket_url=env.get("EVENTSUB_WEBSOCKET_URL", _UNDEFINED),
        twitch_secret_state=env.get("TWITCH_SECRET_STATE", _UNDEFINED),
    )