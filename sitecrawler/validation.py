"""Planning checks that must pass before any page is fetched."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

import requests

from .config import CrawlerConfig, CrawlSettings
from .constants import MAX_DEPTH_LIMIT, MAX_PAGES_LIMIT, MIN_DEPTH, MIN_PAGES
from .errors import InvalidUrlRequest, RobotsDisallowed, SettingsOutOfRange, UnreachableTarget
from .fetcher import Fetcher
from .robots import RobotsChecker

logger = logging.getLogger(__name__)


class CrawlValidator:
    """Validate a crawl request in the fixed order format, settings,
    reachability, robots.txt. The first failure raises its own error type.
    """

    def __init__(
        self,
        config: CrawlerConfig | None = None,
        *,
        fetcher: Fetcher | None = None,
    ) -> None:
        self.config = config or CrawlerConfig()
        self.fetcher = fetcher or Fetcher(self.config)

    @staticmethod
    def validate_url_format(url: str) -> str:
        """Return the stripped URL or raise `InvalidUrlRequest`."""

        candidate = (url or "").strip()
        try:
            parsed = urlsplit(candidate)
        except ValueError as exc:
            raise InvalidUrlRequest(
                f"Invalid URL format: {url!r}", {"url": url, "reason": str(exc)}
            ) from exc

        if not parsed.scheme or not parsed.netloc:
            raise InvalidUrlRequest(
                f"Invalid URL format: {url!r}", {"url": url, "reason": "missing scheme or host"}
            )

        if parsed.scheme.lower() not in {"http", "https"}:
            raise InvalidUrlRequest(
                "Only HTTP and HTTPS protocols are supported",
                {"url": url, "protocol": parsed.scheme.lower()},
            )

        try:
            # `port` raises for non-numeric or out-of-range ports.
            hostname, _ = parsed.hostname, parsed.port
        except ValueError as exc:
            raise InvalidUrlRequest(
                f"Invalid URL format: {url!r}", {"url": url, "reason": str(exc)}
            ) from exc

        if not hostname:
            raise InvalidUrlRequest(
                f"Invalid URL format: {url!r}", {"url": url, "reason": "missing host"}
            )

        return candidate

    @staticmethod
    def validate_settings(settings: CrawlSettings) -> None:
        checks = (
            ("max_pages", settings.max_pages, MIN_PAGES, MAX_PAGES_LIMIT),
            ("max_depth", settings.max_depth, MIN_DEPTH, MAX_DEPTH_LIMIT),
        )
        for field_name, value, lower, upper in checks:
            if value < lower:
                raise SettingsOutOfRange(
                    f"{field_name} must be at least {lower}",
                    {
                        field_name: value,
                        "limit": lower,
                        "field": field_name,
                        "validation_rule": f"must be at least {lower}",
                    },
                )
            if value > upper:
                raise SettingsOutOfRange(
                    f"{field_name} cannot exceed {upper}",
                    {
                        field_name: value,
                        "limit": upper,
                        "field": field_name,
                        "validation_rule": f"cannot exceed {upper}",
                    },
                )

    def validate_accessibility(self, url: str) -> None:
        """HEAD the seed; servers that refuse HEAD get a single GET instead."""

        user_agent = self.config.validation_user_agent
        try:
            response = self.fetcher.head(url, user_agent=user_agent)
        except requests.RequestException as exc:
            raise UnreachableTarget(
                f"Website is not reachable: {url}",
                {"url": url, "reason": f"{exc.__class__.__name__}: {exc}"},
            ) from exc

        status_code = response.status_code
        if status_code in {405, 501}:
            result = self.fetcher.fetch(url, user_agent=user_agent)
            if result.status_code is None:
                raise UnreachableTarget(
                    f"Website is not reachable: {url}",
                    {"url": url, "reason": result.failure_message()},
                )
            status_code = result.status_code

        if not 200 <= status_code < 400:
            raise UnreachableTarget(
                f"Website is not accessible: HTTP {status_code}",
                {"url": url, "status_code": status_code},
            )

    def validate_robots(self, url: str, checker: RobotsChecker) -> None:
        user_agent = self.config.validation_user_agent
        try:
            loaded = checker.can_load(url)
            allowed = loaded and checker.is_allowed(url, user_agent)
        except Exception as exc:
            raise RobotsDisallowed(
                f"robots.txt could not be checked for {url}",
                {"url": url, "reason": f"{exc.__class__.__name__}: {exc}"},
            ) from exc

        if not loaded:
            raise RobotsDisallowed(
                f"robots.txt could not be loaded for {url}",
                {"url": url, "user_agent": user_agent},
            )
        if not allowed:
            raise RobotsDisallowed(
                f"Crawling blocked by robots.txt: {url}",
                {"url": url, "user_agent": user_agent},
            )

    def validate_all(
        self,
        url: str,
        settings: CrawlSettings,
        robots_checker: RobotsChecker | None = None,
    ) -> str:
        """Run every planning check; returns the validated seed URL."""

        seed_url = self.validate_url_format(url)
        self.validate_settings(settings)

        if self.config.check_accessibility:
            self.validate_accessibility(seed_url)

        if settings.respect_robots_txt and robots_checker is not None:
            self.validate_robots(seed_url, robots_checker)
        else:
            logger.debug("Skipping robots.txt check for %s", seed_url)

        return seed_url


__all__ = ["CrawlValidator"]
