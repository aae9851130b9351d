"""Execution strategy selection and frontier sizing."""

from __future__ import annotations

import math
import re
from urllib.parse import urlsplit

from .config import CrawlSettings
from .constants import BYTES_PER_MEGABYTE, MAX_DEPTH_LIMIT, MAX_PAGES_LIMIT
from .types import CrawlStrategy, RetryPolicy, StrategyType, UrlPriorityScore, UrlSource


MIN_QUEUE_SIZE = 5
MAX_QUEUE_SIZE = 100

BASE_URL_PRIORITY = 100
SITEMAP_SOURCE_BONUS = 50
HIGH_VALUE_PATTERN_BONUS = 30
DEPTH_PENALTY = 10

HIGH_VALUE_URL_PATTERN = re.compile(
    r"/(about|services|products|solutions|contact|pricing|demo|trial|resources"
    r"|case-studies|testimonials|industries|features|benefits)",
    re.IGNORECASE,
)

_SITEMAP_FIRST = CrawlStrategy(
    type=StrategyType.SITEMAP_FIRST,
    prioritize_sitemaps=True,
    max_concurrency=2,
    retry_policy=RetryPolicy(max_retries=2, backoff_multiplier=1.5),
)
_HYBRID = CrawlStrategy(
    type=StrategyType.HYBRID,
    prioritize_sitemaps=True,
    max_concurrency=3,
    retry_policy=RetryPolicy(max_retries=3, backoff_multiplier=2.0),
)
# Large crawls must not depend on sitemap completeness.
_BREADTH_FIRST = CrawlStrategy(
    type=StrategyType.BREADTH_FIRST,
    prioritize_sitemaps=False,
    max_concurrency=5,
    retry_policy=RetryPolicy(max_retries=2, backoff_multiplier=1.8),
)


def _path_of(url: str) -> str:
    try:
        return urlsplit(url.strip()).path
    except ValueError:
        return url


class StrategySelector:
    """Pick strategy, concurrency and retry parameters from the page budget."""

    def select(self, settings: CrawlSettings) -> CrawlStrategy:
        pages = min(settings.max_pages, MAX_PAGES_LIMIT)
        if pages <= 10:
            return _SITEMAP_FIRST
        if pages <= 50:
            return _HYBRID
        return _BREADTH_FIRST

    def queue_size(
        self,
        settings: CrawlSettings,
        available_memory_bytes: int | None = None,
    ) -> int:
        """Frontier capacity, capped by memory when a positive budget is given.

        A memory budget can only lower the size, never raise it.
        """

        pages = min(settings.max_pages, MAX_PAGES_LIMIT)
        concurrency = self.select(settings).max_concurrency

        size = concurrency * 10 * min(5.0, pages / 10)
        if available_memory_bytes is not None and available_memory_bytes > 0:
            memory_cap = math.floor(available_memory_bytes / BYTES_PER_MEGABYTE / 2)
            size = min(size, memory_cap)

        return int(max(MIN_QUEUE_SIZE, min(size, MAX_QUEUE_SIZE)))

    def url_priority(
        self,
        url: str,
        depth: int,
        source: UrlSource | str,
        settings: CrawlSettings,
    ) -> UrlPriorityScore:
        """Numeric priority for ordering candidate URLs, with its breakdown."""

        source = UrlSource(source)
        priority = BASE_URL_PRIORITY
        reasons = ["Base priority"]

        if source == UrlSource.SITEMAP:
            priority += SITEMAP_SOURCE_BONUS
            reasons.append(f"sitemap source (+{SITEMAP_SOURCE_BONUS})")

        if HIGH_VALUE_URL_PATTERN.search(_path_of(url)):
            priority += HIGH_VALUE_PATTERN_BONUS
            reasons.append(f"high-value URL pattern (+{HIGH_VALUE_PATTERN_BONUS})")

        penalty = depth * DEPTH_PENALTY
        priority -= penalty
        reasons.append(f"depth penalty (-{penalty})")

        max_depth = min(settings.max_depth, MAX_DEPTH_LIMIT)
        should_crawl = depth <= max_depth
        if not should_crawl:
            reasons.append("exceeds max depth")

        return UrlPriorityScore(
            priority=max(0, priority),
            reasoning=", ".join(reasons),
            should_crawl=should_crawl,
        )


__all__ = [
    "HIGH_VALUE_URL_PATTERN",
    "MAX_QUEUE_SIZE",
    "MIN_QUEUE_SIZE",
    "StrategySelector",
]
