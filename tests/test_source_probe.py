"""Tests for the synchronous source reachability probe."""
from __future__ import annotations

import sys
from pathlib import Path

import requests

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from src.collectors.source_probe import probe_source
from src.contracts.source import Source

PROBE_CONFIG = {
    "user_agent": "newsdesk-test",
    "accept": "*/*",
    "accept_language": "en",
    "request_timeout_seconds": 2,
}


class DummyResponse:
    def __init__(self, status_code: int, content_type: str = "application/rss+xml"):
        self.status_code = status_code
        self.headers = {"content-type": content_type}


class DummySession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.requested = []
        self._response = response
        self._error = error

    def get(self, url, timeout):
        self.requested.append((url, timeout))
        if self._error is not None:
            raise self._error
        return self._response


def _source(**overrides) -> Source:
    fields = {
        "id": "feed",
        "name": "Feed",
        "url": "https://feed.example.com/rss",
        "language": "en",
        "country": "US",
    }
    fields.update(overrides)
    return Source(**fields)


def test_probe_reports_success():
    session = DummySession(DummyResponse(200))

    report = probe_source(_source(), session=session, collection_config=PROBE_CONFIG)

    assert report["ok"] is True
    assert report["status_code"] == 200
    assert report["content_type"] == "application/rss+xml"
    assert report["error"] is None
    assert session.requested == [("https://feed.example.com/rss", 2.0)]
    assert session.headers["User-Agent"] == "newsdesk-test"


def test_probe_reports_http_errors():
    session = DummySession(DummyResponse(503, "text/html"))

    report = probe_source(_source(), session=session, collection_config=PROBE_CONFIG)

    assert report["ok"] is False
    assert report["error"] == "HTTP 503"
    assert report["latency"] is not None


def test_probe_reports_transport_errors():
    session = DummySession(error=requests.ConnectionError("refused"))

    report = probe_source(_source(), session=session, collection_config=PROBE_CONFIG)

    assert report["ok"] is False
    assert report["status_code"] is None
    assert report["error"].startswith("ConnectionError")


def test_probe_uses_api_endpoint():
    source = _source(
        type="api",
        url="https://api.example.com",
        api_config={"endpoint": "https://api.example.com/v2/news"},
    )
    session = DummySession(DummyResponse(200, "application/json"))

    probe_source(source, session=session, collection_config=PROBE_CONFIG)

    assert session.requested[0][0] == "https://api.example.com/v2/news"
