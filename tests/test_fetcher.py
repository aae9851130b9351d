import gzip
import threading
import time

import pytest
import requests

from sitecrawler import CrawlerConfig, Fetcher, RobotsTxtChecker
from sitecrawler.types import RetryPolicy


class StubResponse:
    def __init__(self, status_code=200, content=b"", content_type="text/html", url=None):
        self.status_code = status_code
        self.content = content
        self.headers = {"Content-Type": content_type}
        self.url = url
        self.text = content.decode("utf-8", errors="replace")


class StubSession:
    """Replays queued responses (or raises queued exceptions) per GET."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome.url is None:
            outcome.url = url
        return outcome

    def close(self):
        self.closed = True


@pytest.fixture
def install_session(monkeypatch):
    def install(*responses):
        session = StubSession(responses)
        monkeypatch.setattr("sitecrawler.fetcher.requests.Session", lambda: session)
        return session

    return install


def make_fetcher(max_retries=2):
    return Fetcher(
        CrawlerConfig(retry_base_delay_seconds=0.0),
        retry_policy=RetryPolicy(max_retries=max_retries, backoff_multiplier=1.5),
    )


def test_fetch_retries_transient_status(install_session):
    session = install_session(StubResponse(503), StubResponse(200, b"<html>ok</html>"))

    result = make_fetcher().fetch("https://example.com/")

    assert result.ok
    assert result.attempts == 2
    assert result.text == "<html>ok</html>"
    assert len(session.requests) == 2
    assert session.requests[0][1]["headers"]["User-Agent"] == CrawlerConfig().user_agent


def test_fetch_does_not_retry_client_errors(install_session):
    session = install_session(StubResponse(404, b"missing"))

    result = make_fetcher().fetch("https://example.com/missing")

    assert not result.ok
    assert result.status_code == 404
    assert result.failure_message() == "HTTP status 404"
    assert len(session.requests) == 1


def test_fetch_reports_network_errors_after_retries(install_session):
    install_session(
        requests.ConnectionError("down"),
        requests.ConnectionError("down"),
        requests.ConnectionError("still down"),
    )

    result = make_fetcher().fetch("https://example.com/")

    assert not result.ok
    assert result.status_code is None
    assert result.attempts == 3
    assert result.error.startswith("ConnectionError")


def test_fetch_text_decompresses_gzip(install_session):
    xml = "<urlset><url><loc>https://example.com/a</loc></url></urlset>"
    install_session(StubResponse(200, gzip.compress(xml.encode("utf-8")), "application/gzip"))

    assert make_fetcher().fetch_text("https://example.com/sitemap.xml.gz") == xml


def test_fetch_text_returns_none_on_failure(install_session):
    install_session(StubResponse(404))
    assert make_fetcher(max_retries=0).fetch_text("https://example.com/sitemap.xml") is None


def test_closed_fetcher_refuses_work(install_session):
    session = install_session(StubResponse(200, b"never"))
    fetcher = make_fetcher()
    fetcher.close()

    result = fetcher.fetch("https://example.com/")

    assert result.error == "Fetcher is closed"
    assert session.requests == []


def test_cancel_event_cuts_retry_backoff_short(monkeypatch):
    cancel = threading.Event()

    class CancellingSession(StubSession):
        def get(self, url, **kwargs):
            cancel.set()
            return super().get(url, **kwargs)

    session = CancellingSession([StubResponse(503), StubResponse(200, b"late")])
    monkeypatch.setattr("sitecrawler.fetcher.requests.Session", lambda: session)
    fetcher = Fetcher(
        CrawlerConfig(retry_base_delay_seconds=30.0),
        retry_policy=RetryPolicy(max_retries=3, backoff_multiplier=1.0),
    )

    started = time.monotonic()
    result = fetcher.fetch("https://example.com/", cancel_event=cancel)

    assert time.monotonic() - started < 5.0
    assert result.cancelled
    assert result.error == "Fetch cancelled"
    assert result.attempts == 2
    assert len(session.requests) == 1


def test_robots_checker_parses_rules():
    session = StubSession([StubResponse(200, b"User-agent: *\nDisallow: /private\n", "text/plain")])
    checker = RobotsTxtChecker(session=session)

    assert checker.can_load("https://example.com/")
    assert checker.is_allowed("https://example.com/about", "*")
    assert not checker.is_allowed("https://example.com/private/x", "*")
    assert len(session.requests) == 1
    assert session.requests[0][0] == "https://example.com/robots.txt"


def test_robots_checker_missing_file_allows_everything():
    checker = RobotsTxtChecker(session=StubSession([StubResponse(404)]))
    assert checker.can_load("https://example.com/")
    assert checker.is_allowed("https://example.com/anything", "*")


def test_robots_checker_server_error_is_unloadable():
    checker = RobotsTxtChecker(session=StubSession([StubResponse(503)]))
    assert not checker.can_load("https://example.com/")
    assert not checker.is_allowed("https://example.com/", "*")


def test_robots_checker_network_error_is_unloadable():
    checker = RobotsTxtChecker(session=StubSession([requests.Timeout("slow")]))
    assert not checker.can_load("https://example.com/")
