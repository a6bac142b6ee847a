"""Coloured console logging with structured fields."""

from __future__ import annotations

import json
import logging
import sys
import time
import traceback
from pathlib import PurePath
from typing import Any

RED = "\x1b[31m"
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
BLUE = "\x1b[34m"
MAGENTA = "\x1b[35m"
CYAN = "\x1b[36m"
WHITE = "\x1b[37m"
MUTED_MAGENTA = "\x1b[38;5;90m"
RESET = "\x1b[0m"

ROOT_NAME = "twitchong"

_LEVELS = {
    logging.DEBUG: ("DEBUG", MAGENTA),
    logging.INFO: ("INFO", BLUE),
    logging.WARNING: ("WARN", YELLOW),
    logging.ERROR: ("ERROR", RED),
    logging.CRITICAL: ("FATAL", RED),
}


def _level(record: logging.LogRecord) -> tuple[str, str]:
    if record.levelno in _LEVELS:
        return _LEVELS[record.levelno]
    return record.levelname, RED


def _trimmed_path(record: logging.LogRecord) -> str:
    path = PurePath(record.pathname)
    short = f"{path.parent.name}/{path.name}" if path.parent.name else path.name
    return f"{short}:{record.lineno}"


class ColorFormatter(logging.Formatter):
    """Tab-separated console lines: time, level, name, caller, message, fields."""

    def formatTime(self, record, datefmt=None):  # noqa: N802 - logging API
        stamp = time.strftime("%Y-%m-%d %H:%M:%S", self.converter(record.created))
        return f"{stamp}.{int(record.msecs):03d}"

    def format(self, record):
        level_name, color = _level(record)
        parts = [
            f"{WHITE}{self.formatTime(record)}{RESET}",
            f"{color}{level_name}{RESET}",
        ]
        if record.name:
            parts.append(record.name)
        parts.append(f"{MUTED_MAGENTA}{_trimmed_path(record)}{RESET}")
        parts.append(record.getMessage())
        fields = getattr(record, "fields", None)
        if fields:
            parts.append(json.dumps(fields, default=str, ensure_ascii=False))
        line = "\t".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        if record.stack_info:
            line += "\n" + self.formatStack(record.stack_info)
        return line


class _StdoutHandler(logging.StreamHandler):
    """Writes to whatever sys.stdout is at the time of each record."""

    def __init__(self) -> None:
        super().__init__(sys.stdout)

    def emit(self, record):
        self.stream = sys.stdout
        super().emit(record)


class _StacktraceFilter(logging.Filter):
    """Attaches the caller's stack to records at error level and above."""

    def filter(self, record):
        if record.levelno >= logging.ERROR and not record.exc_info and not record.stack_info:
            stack = "".join(traceback.format_stack()[:-1])
            record.stack_info = "Stack (most recent call last):\n" + stack.rstrip("\n")
        return True


class _FieldAdapter(logging.LoggerAdapter):
    """Adds bound fields to every record, merged with per-call fields."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra["fields"] = {**self.extra["fields"], **extra.get("fields", {})}
        kwargs["extra"] = extra
        return msg, kwargs


def _root() -> logging.Logger:
    root = logging.getLogger(ROOT_NAME)
    if not any(isinstance(h, _StdoutHandler) for h in root.handlers):
        handler = _StdoutHandler()
        handler.setFormatter(ColorFormatter())
        handler.addFilter(_StacktraceFilter())
        root.addHandler(handler)
        root.setLevel(logging.DEBUG)
    return root


def get_logger(name: str | None) -> logging.Logger:
    """Return the package logger, or a named child of it."""
    root = _root()
    return root.getChild(name) if name else root


def with_fields(**kwargs: Any) -> logging.LoggerAdapter:
    """Return a logger that adds the given fields to every record."""
    return _FieldAdapter(get_logger(None), {"fields": dict(kwargs)})


def object_field(key: str, obj: Any) -> dict[str, str]:
    """Return a field holding obj as indented JSON, or the marshalling error."""
    try:
        text = json.dumps(obj, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as err:
        return {key: f"error marshaling object: {err}"}
    return {key: text}


def pretty_object(msg: str, key: str, obj: Any) -> None:
    """Log obj at info level as indented JSON under key."""
    get_logger(None).info(msg, extra={"fields": object_field(key, obj)})