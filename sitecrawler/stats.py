"""Thread-safe crawl statistics aggregation."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
import threading
from typing import Any, Mapping

from .frontier import EnqueueResult, EnqueueStatus
from .types import CrawledPageData, CrawlState, FetchResult, ParseResult, utc_now_iso


class StatsCollector:
    """Collect and summarize crawler runtime statistics.

    The collector is thread-safe and intended for use across concurrent
    fetch/parse workers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

        self._started_at = utc_now_iso()
        self._finished_at: str | None = None
        self._state_history: list[dict[str, str]] = []

        self._enqueue_counts: dict[str, int] = defaultdict(int)
        self._frontier_snapshot: dict[str, int | bool] = {}

        self._fetched_ok = 0
        self._fetched_error = 0
        self._fetch_status_code_counts: dict[str, int] = defaultdict(int)
        self._fetch_error_type_counts: dict[str, int] = defaultdict(int)
        self._fetch_elapsed_ms_total = 0
        self._fetch_elapsed_samples = 0
        self._fetch_retries = 0

        self._parsed_ok = 0
        self._parsed_error = 0
        self._parse_error_type_counts: dict[str, int] = defaultdict(int)
        self._parse_text_chars_total = 0
        self._parse_links_total = 0

        self._page_status_counts: dict[str, int] = defaultdict(int)
        self._duplicates_exact = 0
        self._duplicates_near = 0
        self._custom_counters: dict[str, int] = defaultdict(int)

    def record_state(self, state: CrawlState) -> None:
        with self._lock:
            self._state_history.append({"state": state.value, "at": utc_now_iso()})

    def record_enqueue(self, result_or_status: EnqueueResult | EnqueueStatus) -> None:
        """Record one frontier enqueue outcome."""

        if isinstance(result_or_status, EnqueueResult):
            status = result_or_status.status
        else:
            status = result_or_status

        with self._lock:
            self._enqueue_counts[status.value] += 1

    def record_enqueue_many(
        self, results: list[EnqueueResult] | tuple[EnqueueResult, ...]
    ) -> None:
        for result in results:
            self.record_enqueue(result)

    def record_frontier_snapshot(self, snapshot: Mapping[str, int | bool]) -> None:
        """Attach latest frontier snapshot for diagnostics."""

        with self._lock:
            self._frontier_snapshot = dict(snapshot)

    def record_fetch(self, result: FetchResult) -> None:
        with self._lock:
            if result.ok:
                self._fetched_ok += 1
            else:
                self._fetched_error += 1

            if result.status_code is not None:
                self._fetch_status_code_counts[str(result.status_code)] += 1

            if result.error:
                err_type = result.error.split(":", maxsplit=1)[0].strip() or "Unknown"
                self._fetch_error_type_counts[err_type] += 1

            if result.elapsed_ms is not None:
                self._fetch_elapsed_ms_total += int(result.elapsed_ms)
                self._fetch_elapsed_samples += 1

            self._fetch_retries += max(0, result.attempts - 1)

    def record_parse(self, result: ParseResult) -> None:
        text = result.text or ""

        with self._lock:
            if result.ok:
                self._parsed_ok += 1
            else:
                self._parsed_error += 1

            if result.error:
                err_type = result.error.split(":", maxsplit=1)[0].strip() or "Unknown"
                self._parse_error_type_counts[err_type] += 1

            self._parse_text_chars_total += len(text)
            self._parse_links_total += len(result.out_links)

    def record_page(self, page: CrawledPageData) -> None:
        with self._lock:
            self._page_status_counts[page.status.value] += 1

    def record_duplicate(self, *, exact: bool) -> None:
        with self._lock:
            if exact:
                self._duplicates_exact += 1
            else:
                self._duplicates_near += 1

    def increment(self, name: str, value: int = 1) -> None:
        """Increment a custom counter for ad-hoc instrumentation."""

        if not name or value == 0:
            return
        with self._lock:
            self._custom_counters[name] += value

    def finish(self) -> None:
        """Mark crawl as finished."""

        with self._lock:
            if self._finished_at is None:
                self._finished_at = utc_now_iso()

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serializable summary payload."""

        with self._lock:
            start = _parse_iso_utc(self._started_at)
            end = (
                _parse_iso_utc(self._finished_at)
                if self._finished_at
                else datetime.now(timezone.utc)
            )
            duration_seconds = max(0.0, (end - start).total_seconds())

            fetch_elapsed_avg = (
                self._fetch_elapsed_ms_total / self._fetch_elapsed_samples
                if self._fetch_elapsed_samples > 0
                else 0.0
            )
            fetched_total = self._fetched_ok + self._fetched_error

            return {
                "started_at": self._started_at,
                "finished_at": self._finished_at,
                "duration_seconds": duration_seconds,
                "states": [dict(entry) for entry in self._state_history],
                "fetched_ok": self._fetched_ok,
                "fetched_error": self._fetched_error,
                "parsed_ok": self._parsed_ok,
                "parsed_error": self._parsed_error,
                "pages": dict(self._page_status_counts),
                "duplicates": {
                    "exact": self._duplicates_exact,
                    "near": self._duplicates_near,
                },
                "throughput": {
                    "fetched_per_second": (
                        fetched_total / duration_seconds if duration_seconds > 0 else 0.0
                    ),
                },
                "frontier": {
                    "enqueue_status_counts": dict(self._enqueue_counts),
                    "snapshot": dict(self._frontier_snapshot),
                },
                "fetch": {
                    "status_code_counts": dict(self._fetch_status_code_counts),
                    "error_type_counts": dict(self._fetch_error_type_counts),
                    "elapsed_ms_total": self._fetch_elapsed_ms_total,
                    "elapsed_ms_samples": self._fetch_elapsed_samples,
                    "elapsed_ms_avg": fetch_elapsed_avg,
                    "retries": self._fetch_retries,
                },
                "parse": {
                    "error_type_counts": dict(self._parse_error_type_counts),
                    "text_chars_total": self._parse_text_chars_total,
                    "links_total": self._parse_links_total,
                },
                "custom_counters": dict(self._custom_counters),
            }


def _parse_iso_utc(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = ["StatsCollector"]
