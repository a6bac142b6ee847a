"""Small JSON-over-HTTP helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import requests
from requests.structures import CaseInsensitiveDict


class RequestError(Exception):
    """Raised when a request cannot be made or the server answers with an error."""

    def __init__(self, message: str, status: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status = status
        self.body = body


@dataclass
class RequestConfig:
    """What to send: method, URL, headers and an optional JSON body."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


def send_request(config: RequestConfig) -> requests.Response:
    """Send the request and return the response; the caller closes it.

    A body is sent as JSON, with Content-Type application/json unless set.
    """
    data = None
    if config.body is not None:
        try:
            data = json.dumps(config.body, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as err:
            raise RequestError(f"error marshaling request body: {err}") from err

    headers = CaseInsensitiveDict(config.headers)
    if config.body is not None and not headers.get("Content-Type"):
        headers["Content-Type"] = "application/json"

    try:
        return requests.request(config.method, config.url, data=data, headers=headers)
    except requests.RequestException as err:
        raise RequestError(f"error sending request: {err}") from err


def send_request_and_parse(config: RequestConfig) -> Any:
    """Send the request and return its decoded JSON body (None if empty).

    Raises RequestError for statuses of 400 and above and for bodies that are not JSON.
    """
    with send_request(config) as resp:
        try:
            content = resp.content
        except requests.RequestException as err:
            raise RequestError(f"error reading response body: {err}") from err

    text = content.decode("utf-8", errors="replace")
    if resp.status_code >= 400:
        raise RequestError(
            f"request failed with status {resp.status_code}: {text}",
            status=resp.status_code,
            body=text,
        )
    if not content.strip():
        return None
    try:
        return json.loads(content)
    except ValueError as err:
        raise RequestError(f"error parsing response: {err}", status=resp.status_code, body=text) from err