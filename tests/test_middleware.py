import logging

import pytest
from flask import Flask

from twitchong.middleware import install_request_logging


@pytest.fixture
def app():
    application = Flask(__name__)

    @application.route("/ping", methods=["GET", "POST"])
    def ping():
        return "pong"

    @application.route("/boom")
    def boom():
        raise RuntimeError("boom")

    install_request_logging(application)
    return application


def _completed(caplog):
    return [r for r in caplog.records if r.getMessage() == "request completed"]


def test_request_is_logged_with_method_and_path(app, caplog):
    with caplog.at_level(logging.INFO, logger="twitchong"):
        resp = app.test_client().get("/ping")
    assert resp.data == b"pong"
    records = _completed(caplog)
    assert len(records) == 1
    fields = records[0].fields
    assert fields["method"] == "GET"
    assert fields["path"] == "/ping"
    assert fields["component"] == "http"
    assert fields["duration"] >= 0


def test_post_requests_are_logged(app, caplog):
    with caplog.at_level(logging.INFO, logger="twitchong"):
        app.test_client().post("/ping")
    assert [r.fields["method"] for r in _completed(caplog)] == ["POST"]


def test_unknown_path_is_logged(app, caplog):
    with caplog.at_level(logging.INFO, logger="twitchong"):
        resp = app.test_client().get("/missing")
    assert resp.status_code == 404
    assert [r.fields["path"] for r in _completed(caplog)] == ["/missing"]


def test_failing_request_is_still_logged(app, caplog):
    app.config["PROPAGATE_EXCEPTIONS"] = False
    with caplog.at_level(logging.INFO, logger="twitchong"):
        resp = app.test_client().get("/boom")
    assert resp.status_code == 500
    assert [r.fields["path"] for r in _completed(caplog)] == ["/boom"]