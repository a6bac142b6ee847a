import json

import pytest
import responses

from twitchong.httpclient import (
    RequestConfig,
    RequestError,
    send_request,
    send_request_and_parse,
)

URL = "http://localhost:11434/api/generate"


def test_body_sent_as_json_with_default_content_type():
    body = {"model": "m", "stream": False}
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, URL, json={"ok": True})
        resp = send_request(RequestConfig("POST", URL, body=body))
        sent = rsps.calls[0].request
    assert resp.status_code == 200
    assert json.loads(sent.body) == body
    assert sent.headers["Content-Type"] == "application/json"


def test_custom_content_type_kept():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, URL, body="")
        resp = send_request(
            RequestConfig("POST", URL, headers={"content-type": "text/plain"}, body="x")
        )
        sent = rsps.calls[0].request
    assert resp.status_code == 200
    assert sent.headers["Content-Type"] == "text/plain"


def test_headers_are_sent_and_no_body():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, body="")
        resp = send_request(
            RequestConfig("GET", URL, headers={"Authorization": "Bearer token"})
        )
        sent = rsps.calls[0].request
    assert resp.status_code == 200
    assert sent.headers["Authorization"] == "Bearer token"
    assert sent.body is None
    assert "Content-Type" not in sent.headers


def test_unserialisable_body_raises():
    with pytest.raises(RequestError, match="error marshaling request body"):
        send_request(RequestConfig("POST", URL, body={"x": object()}))


def test_connection_error_raises():
    with responses.RequestsMock():
        with pytest.raises(RequestError, match="error sending request"):
            send_request(RequestConfig("GET", "http://localhost:1/unregistered"))


def test_parse_returns_json():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, URL, json={"response": "hi"})
        result = send_request_and_parse(RequestConfig("POST", URL, body={"prompt": "p"}))
    assert result == {"response": "hi"}


def test_parse_error_status_raises():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, body="not found", status=404)
        with pytest.raises(RequestError) as info:
            send_request_and_parse(RequestConfig("GET", URL))
    assert info.value.status == 404
    assert str(info.value) == "request failed with status 404: not found"


def test_parse_invalid_json_raises():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, body="{broken")
        with pytest.raises(RequestError, match="error parsing response"):
            send_request_and_parse(RequestConfig("GET", URL))


def test_parse_empty_body_returns_none():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, URL, body="", status=202)
        result = send_request_and_parse(RequestConfig("POST", URL, body={}))
    assert result is None