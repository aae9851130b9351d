"""Shared fixtures: in-process fakes for the fetch layer and robots.txt."""

from __future__ import annotations

from dataclasses import dataclass
import threading
from types import SimpleNamespace

import pytest

from sitecrawler import CrawlerConfig, CrawlSettings, FetchResult, normalize_url


def html_page(title: str, body: str, *, links: list[str] | None = None, chrome: str = "") -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links or [])
    return (
        "<html><head>"
        f"<title>{title}</title>"
        "<script>var tracking = 1;</script>"
        "</head><body>"
        f"<nav>{anchors}</nav>"
        f"{chrome}"
        f"<main><h1>{title}</h1><p>{body}</p></main>"
        "<footer>Copyright Example Co</footer>"
        "</body></html>"
    )


def paragraph(topic: str, words: int = 40) -> str:
    """Deterministic filler text that differs per topic."""

    vocabulary = [
        f"{topic}{index}" if index % 3 == 0 else f"{topic[:3]}word{index * 7 % 53}"
        for index in range(words)
    ]
    return " ".join(vocabulary) + "."


@dataclass
class FakeResponse:
    status: int
    body: bytes
    content_type: str = "text/html; charset=utf-8"


class FakeFetcher:
    """Stand-in for `Fetcher` serving canned responses keyed by normalized URL."""

    def __init__(
        self,
        pages: dict[str, str | FakeResponse] | None = None,
        *,
        sitemaps: dict[str, str] | None = None,
        head_status: int = 200,
        head_error: Exception | None = None,
        elapsed_ms: int = 120,
        delays: dict[str, float] | None = None,
    ) -> None:
        self._pages: dict[str, FakeResponse] = {}
        for url, page in (pages or {}).items():
            self.add_page(url, page)
        self.sitemaps = dict(sitemaps or {})
        self.head_status = head_status
        self.head_error = head_error
        self.elapsed_ms = elapsed_ms
        self._delays = {normalize_url(url): seconds for url, seconds in (delays or {}).items()}

        self.retry_policy = None
        self.closed = False
        self._lock = threading.Lock()
        self.fetched: list[str] = []
        self.head_calls: list[str] = []
        self.sitemap_calls: list[str] = []

    def add_page(self, url: str, page: str | FakeResponse) -> None:
        if isinstance(page, str):
            page = FakeResponse(200, page.encode("utf-8"))
        self._pages[normalize_url(url)] = page

    def fetch(self, url, *, user_agent=None, timeout=None, headers=None, cancel_event=None) -> FetchResult:
        with self._lock:
            self.fetched.append(url)

        delay = self._delays.get(normalize_url(url))
        if delay and (cancel_event or threading.Event()).wait(delay):
            return FetchResult(
                requested_url=url,
                final_url=None,
                status_code=None,
                content_type=None,
                body=None,
                error="Fetch cancelled",
                cancelled=True,
            )

        page = self._pages.get(normalize_url(url))
        if page is None:
            return FetchResult(
                requested_url=url,
                final_url=url,
                status_code=404,
                content_type="text/html",
                body=b"not found",
                elapsed_ms=self.elapsed_ms,
            )
        return FetchResult(
            requested_url=url,
            final_url=url,
            status_code=page.status,
            content_type=page.content_type,
            body=page.body,
            elapsed_ms=self.elapsed_ms,
        )

    def head(self, url, *, user_agent=None):
        with self._lock:
            self.head_calls.append(url)
        if self.head_error is not None:
            raise self.head_error
        return SimpleNamespace(status_code=self.head_status)

    def fetch_text(self, url: str) -> str | None:
        with self._lock:
            self.sitemap_calls.append(url)
        return self.sitemaps.get(url)

    def close(self) -> None:
        self.closed = True


class FakeRobotsChecker:
    """`RobotsChecker` with a fixed verdict and optional blocked URLs."""

    def __init__(
        self,
        *,
        loadable: bool = True,
        allowed: bool = True,
        blocked: set[str] | None = None,
    ) -> None:
        self.loadable = loadable
        self.allowed = allowed
        self.blocked = {normalize_url(url) for url in blocked or set()}
        self.calls: list[tuple[str, str]] = []

    def can_load(self, url: str) -> bool:
        return self.loadable

    def is_allowed(self, url: str, user_agent: str) -> bool:
        self.calls.append((url, user_agent))
        return self.allowed and normalize_url(url) not in self.blocked


@pytest.fixture
def settings() -> CrawlSettings:
    return CrawlSettings(max_pages=15, max_depth=2)


@pytest.fixture
def crawler_config() -> CrawlerConfig:
    return CrawlerConfig(retry_base_delay_seconds=0.0, concurrency=2)


@pytest.fixture
def robots() -> FakeRobotsChecker:
    return FakeRobotsChecker()
