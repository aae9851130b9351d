"""Thread-safe FIFO frontier with visited-set, depth and page-budget enforcement."""

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .types import FrontierItem, UrlSource
from .url import normalize_url


class EnqueueStatus(str, Enum):
    """Result status for frontier enqueue attempts."""

    ENQUEUED = "enqueued"
    SKIPPED_INVALID_URL = "skipped_invalid_url"
    SKIPPED_DEPTH = "skipped_depth"
    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_BUDGET = "skipped_budget"
    SKIPPED_QUEUE_FULL = "skipped_queue_full"
    SKIPPED_CLOSED = "skipped_closed"


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of one enqueue attempt."""

    status: EnqueueStatus
    normalized_url: str | None = None
    item: FrontierItem | None = None

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED


class Frontier:
    """Frontier queue drained by crawl workers.

    - A URL is pushed at most once: its normalized form must be neither
      queued nor visited, and its depth must be below `max_depth`.
    - `pop` takes the FIFO head, re-checks the visited set and reserves a
      page-budget slot under one lock, so no URL is crawled twice and no more
      than `max_pages` pages are ever in flight or done.
    - `release` hands a slot back for pages that turn out not to count.
    """

    def __init__(
        self,
        *,
        max_pages: int,
        max_depth: int,
        max_queue_size: int | None = None,
    ) -> None:
        if max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        if max_depth < 1:
            raise ValueError("max_depth must be >= 1")

        self.max_pages = max_pages
        self.max_depth = max_depth
        self.max_queue_size = max_queue_size

        self._queue: queue.Queue[FrontierItem] = queue.Queue()
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)

        self._queued_urls: set[str] = set()
        self._visited_urls: set[str] = set()
        self._reserved = 0
        self._in_flight = 0

        self._enqueued_count = 0
        self._dequeued_count = 0
        self._released_count = 0
        self._skipped_seen_count = 0
        self._skipped_depth_count = 0
        self._skipped_budget_count = 0
        self._skipped_invalid_count = 0
        self._skipped_queue_full_count = 0
        self._dropped_count = 0

        self._closed = False

    def seed(
        self,
        urls: Iterable[str],
        *,
        source: UrlSource = UrlSource.MANUAL,
    ) -> list[EnqueueResult]:
        """Seed the frontier with depth-0 URLs."""

        return [self.push(url, depth=0, source=source) for url in urls]

    def push(
        self,
        url: str,
        *,
        depth: int,
        source: UrlSource = UrlSource.DISCOVERED,
        referrer: str | None = None,
    ) -> EnqueueResult:
        """Attempt to enqueue one URL with constraints enforced."""

        normalized = normalize_url(url) if url else ""
        if not normalized:
            with self._lock:
                self._skipped_invalid_count += 1
            return EnqueueResult(EnqueueStatus.SKIPPED_INVALID_URL)

        with self._changed:
            if self._closed:
                return EnqueueResult(EnqueueStatus.SKIPPED_CLOSED, normalized_url=normalized)

            if depth >= self.max_depth:
                self._skipped_depth_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_DEPTH, normalized_url=normalized)

            if normalized in self._visited_urls or normalized in self._queued_urls:
                self._skipped_seen_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_SEEN, normalized_url=normalized)

            if self._reserved >= self.max_pages:
                self._skipped_budget_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_BUDGET, normalized_url=normalized)

            if self.max_queue_size is not None and self._queue.qsize() >= self.max_queue_size:
                self._skipped_queue_full_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_QUEUE_FULL, normalized_url=normalized)

            item = FrontierItem(
                url=url,
                depth=depth,
                normalized_url=normalized,
                source=source,
                referrer=referrer,
            )
            self._queued_urls.add(normalized)
            self._queue.put(item)
            self._enqueued_count += 1
            self._changed.notify()

        return EnqueueResult(EnqueueStatus.ENQUEUED, normalized_url=normalized, item=item)

    def push_many(
        self,
        urls: Iterable[str],
        *,
        depth: int,
        source: UrlSource = UrlSource.DISCOVERED,
        referrer: str | None = None,
    ) -> list[EnqueueResult]:
        """Attempt to enqueue multiple URLs, preserving input order."""

        return [self.push(url, depth=depth, source=source, referrer=referrer) for url in urls]

    def pop(self, *, timeout: float | None = None) -> FrontierItem | None:
        """Pop the next crawlable item and reserve a budget slot for it.

        Returns `None` when nothing is available within `timeout`, or when the
        frontier is closed or the budget is spent. Every returned item must be
        finished with `task_done`.
        """

        deadline = None if timeout is None else time.monotonic() + timeout

        with self._changed:
            while True:
                if self._closed:
                    self._drop_queued()
                    return None

                if self._reserved >= self.max_pages:
                    if self._in_flight == 0:
                        # Nothing running can free a slot any more.
                        self._drop_queued()
                        return None
                elif not self._queue.empty():
                    item = self._queue.get_nowait()
                    self._queued_urls.discard(item.normalized_url)

                    if item.normalized_url in self._visited_urls:
                        self._skipped_seen_count += 1
                        self._queue.task_done()
                        continue

                    self._visited_urls.add(item.normalized_url)
                    self._reserved += 1
                    self._in_flight += 1
                    self._dequeued_count += 1
                    return item

                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return None
                self._changed.wait(remaining)

    def release(self, item: FrontierItem) -> None:
        """Return the budget slot reserved for `item`."""

        with self._changed:
            if self._reserved > 0:
                self._reserved -= 1
                self._released_count += 1
            self._changed.notify_all()

    def task_done(self) -> None:
        """Mark one popped item as finished."""

        with self._changed:
            self._in_flight -= 1
            self._queue.task_done()
            self._changed.notify_all()

    def join(self) -> None:
        """Block until every queued item has been finished or dropped."""

        self._queue.join()

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Wait until nothing is queued or in flight; False on timeout."""

        with self._changed:
            return self._changed.wait_for(self._is_idle, timeout=timeout)

    def close(self) -> None:
        """Close the frontier: future pushes are refused and queued items dropped."""

        with self._changed:
            self._closed = True
            self._drop_queued()
            self._changed.notify_all()

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def budget_exhausted(self) -> bool:
        with self._lock:
            return self._reserved >= self.max_pages

    def qsize(self) -> int:
        """Approximate queue size."""

        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()

    def visited_urls(self) -> set[str]:
        """Snapshot of normalized URLs handed out to workers."""

        with self._lock:
            return set(self._visited_urls)

    def snapshot(self) -> dict[str, int | bool]:
        """Frontier counters for logs/stats reporting."""

        with self._lock:
            return {
                "closed": self._closed,
                "queue_size": self._queue.qsize(),
                "visited_urls": len(self._visited_urls),
                "reserved": self._reserved,
                "in_flight": self._in_flight,
                "enqueued": self._enqueued_count,
                "dequeued": self._dequeued_count,
                "released": self._released_count,
                "dropped": self._dropped_count,
                "skipped_seen": self._skipped_seen_count,
                "skipped_depth": self._skipped_depth_count,
                "skipped_budget": self._skipped_budget_count,
                "skipped_invalid": self._skipped_invalid_count,
                "skipped_queue_full": self._skipped_queue_full_count,
            }

    def _is_idle(self) -> bool:
        return self._in_flight == 0 and (
            self._queue.empty() or self._closed or self._reserved >= self.max_pages
        )

    def _drop_queued(self) -> None:
        # Caller holds the lock.
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            self._queued_urls.discard(item.normalized_url)
            self._dropped_count += 1
            self._queue.task_done()


__all__ = [
    "EnqueueResult",
    "EnqueueStatus",
    "Frontier",
]
