"""Crawler error taxonomy.

Planning errors (`InvalidUrlRequest`, `SettingsOutOfRange`, `UnreachableTarget`,
`RobotsDisallowed`) abort a crawl before any page is fetched. `FetchFailure` and
`ParseFailure` describe per-page problems; the orchestrator records them on the
page and keeps crawling.
"""

from __future__ import annotations

from typing import Any

from .types import JSONDict


class CrawlError(Exception):
    """Base class for crawler errors with inspectable context."""

    code = "crawl_error"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})

    def to_json(self) -> JSONDict:
        return {
            "code": self.code,
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": {str(key): _json_safe(value) for key, value in self.context.items()},
        }


class PlanningError(CrawlError):
    """Error that rejects a crawl request during planning."""

    code = "planning_error"


class InvalidUrlRequest(PlanningError):
    """Seed URL is malformed or uses an unsupported protocol."""

    code = "invalid_url"


class SettingsOutOfRange(PlanningError):
    """Requested page or depth bounds are outside the allowed range."""

    code = "settings_out_of_range"


class UnreachableTarget(PlanningError):
    """Seed URL failed the reachability check."""

    code = "unreachable_target"


class RobotsDisallowed(PlanningError):
    """robots.txt blocks the crawl, or could not be loaded when required."""

    code = "robots_disallowed"


class FetchFailure(CrawlError):
    """One page could not be downloaded."""

    code = "fetch_failure"


class ParseFailure(CrawlError):
    """One downloaded page yielded no usable content."""

    code = "parse_failure"


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _json_safe(item) for key, item in value.items()}
    return str(value)


__all__ = [
    "CrawlError",
    "FetchFailure",
    "InvalidUrlRequest",
    "ParseFailure",
    "PlanningError",
    "RobotsDisallowed",
    "SettingsOutOfRange",
    "UnreachableTarget",
]
