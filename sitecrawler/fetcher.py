"""Page fetching over requests with retry, backoff and rate-limit logic."""

from __future__ import annotations

import gzip
import logging
import threading
import time
from dataclasses import dataclass
from typing import Mapping

import requests

from .config import CrawlerConfig
from .types import FetchResult, RetryPolicy
from .url import hostname_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _AttemptConfig:
    attempts: int
    base_delay_seconds: float
    backoff_multiplier: float

    def delay_for(self, attempt: int) -> float:
        """Sleep before retry number `attempt` (1-based)."""

        return self.base_delay_seconds * (self.backoff_multiplier ** (attempt - 1))


class Fetcher:
    """Fetch URLs with `requests`, one session per worker thread.

    Retries follow the crawl's `RetryPolicy`: transient failures (network
    errors, 408, 429, 5xx) are retried with exponential backoff; any other
    response is final.
    """

    def __init__(
        self,
        config: CrawlerConfig | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.config = config or CrawlerConfig()
        self.retry_policy = retry_policy or RetryPolicy(max_retries=0, backoff_multiplier=1.0)

        self._thread_local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

        self._rate_lock = threading.Lock()
        self._next_allowed_time_by_host: dict[str, float] = {}

        self._closed = threading.Event()

    def fetch(
        self,
        url: str,
        *,
        user_agent: str | None = None,
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> FetchResult:
        """GET one URL with retries; never raises for network problems.

        Setting `cancel_event` cuts retry backoff short and skips any further
        attempt; the result then has `cancelled=True`.
        """

        request_headers = self.config.headers(user_agent=user_agent)
        if headers:
            request_headers.update(headers)

        attempt_cfg = _AttemptConfig(
            attempts=max(1, self.retry_policy.max_retries + 1),
            base_delay_seconds=max(0.0, self.config.retry_base_delay_seconds),
            backoff_multiplier=max(1.0, self.retry_policy.backoff_multiplier),
        )
        return self._fetch_with_retries(
            url,
            headers=request_headers,
            timeout=timeout or self.config.timeout_seconds,
            attempt_cfg=attempt_cfg,
            cancel_event=cancel_event or self._closed,
        )

    def head(self, url: str, *, user_agent: str | None = None) -> requests.Response:
        """Single HEAD request; network errors propagate as `requests` exceptions."""

        session = self._thread_local_session()
        return session.head(
            url,
            headers=self.config.headers(user_agent=user_agent),
            timeout=self.config.head_timeout_seconds,
            allow_redirects=True,
        )

    def fetch_text(self, url: str) -> str | None:
        """Sitemap transport: GET returning decoded text, or None on failure.

        Gzip payloads (`.gz` sitemaps) are decompressed transparently.
        """

        result = self.fetch(url)
        if not result.ok or result.body is None:
            logger.debug("Sitemap fetch failed for %s: %s", url, result.failure_message())
            return None

        body = result.body
        if body[:2] == b"\x1f\x8b":
            try:
                body = gzip.decompress(body)
            except (OSError, EOFError) as exc:
                logger.debug("Could not decompress %s: %s", url, exc)
                return None
        return body.decode("utf-8", errors="replace")

    def close(self) -> None:
        """Close all sessions opened by worker threads."""

        self._closed.set()
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _fetch_with_retries(
        self,
        url: str,
        *,
        headers: dict[str, str],
        timeout: float,
        attempt_cfg: _AttemptConfig,
        cancel_event: threading.Event,
    ) -> FetchResult:
        last_result: FetchResult | None = None

        for attempt in range(1, attempt_cfg.attempts + 1):
            if self._closed.is_set() or cancel_event.is_set():
                return FetchResult(
                    requested_url=url,
                    final_url=None,
                    status_code=None,
                    content_type=None,
                    body=None,
                    attempts=attempt,
                    error="Fetcher is closed" if self._closed.is_set() else "Fetch cancelled",
                    cancelled=True,
                )

            result = self._fetch_once(url, headers=headers, timeout=timeout)
            result.attempts = attempt
            last_result = result

            if self._is_terminal_result(result):
                return result

            if attempt < attempt_cfg.attempts:
                delay = attempt_cfg.delay_for(attempt)
                logger.debug(
                    "Retrying %s after %s (attempt %d/%d, sleeping %.2fs)",
                    url,
                    result.failure_message(),
                    attempt,
                    attempt_cfg.attempts,
                    delay,
                )
                if delay > 0:
                    cancel_event.wait(delay)

        if last_result is None:
            return FetchResult(
                requested_url=url,
                final_url=None,
                status_code=None,
                content_type=None,
                body=None,
                error="Unknown fetch failure",
            )

        return last_result

    @staticmethod
    def _is_terminal_result(result: FetchResult) -> bool:
        if result.error is not None:
            return False

        if result.status_code is None:
            return False

        if result.status_code in {408, 429} or result.status_code >= 500:
            return False

        return True

    def _fetch_once(self, url: str, *, headers: dict[str, str], timeout: float) -> FetchResult:
        self._wait_for_rate_limit(url)
        started = time.perf_counter()

        session = self._thread_local_session()

        try:
            response = session.get(
                url,
                headers=headers,
                timeout=timeout,
                allow_redirects=True,
            )
            elapsed_ms = int((time.perf_counter() - started) * 1000)

            return FetchResult(
                requested_url=url,
                final_url=response.url or url,
                status_code=response.status_code,
                content_type=response.headers.get("Content-Type"),
                body=response.content if response.content is not None else b"",
                elapsed_ms=elapsed_ms,
                error=None,
            )
        except requests.RequestException as exc:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            return FetchResult(
                requested_url=url,
                final_url=None,
                status_code=None,
                content_type=None,
                body=None,
                elapsed_ms=elapsed_ms,
                error=f"{exc.__class__.__name__}: {exc}",
            )

    def _thread_local_session(self) -> requests.Session:
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = requests.Session()
            self._thread_local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def _wait_for_rate_limit(self, url: str) -> None:
        wait_seconds = max(0.0, self.config.rate_limit_seconds)
        if wait_seconds <= 0:
            return

        host = hostname_of(url)

        while True:
            with self._rate_lock:
                now = time.monotonic()
                next_allowed = self._next_allowed_time_by_host.get(host, 0.0)
                if now >= next_allowed:
                    self._next_allowed_time_by_host[host] = now + wait_seconds
                    return
                sleep_for = next_allowed - now

            if sleep_for > 0:
                time.sleep(sleep_for)


__all__ = ["Fetcher"]
