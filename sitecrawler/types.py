"""Core type definitions for the site crawler.

This module is intentionally dependency-light so other crawler modules can import
shared records without introducing cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .constants import MAX_DEPTH_LIMIT, MAX_PAGES_LIMIT


class PageStatus(str, Enum):
    """Outcome of one crawl attempt for one page."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class UrlPriority(str, Enum):
    """Coarse crawl priority assigned by the policy."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskLevel(str, Enum):
    """Operational risk of a planned crawl."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class StrategyType(str, Enum):
    """Execution strategy picked from the requested page budget."""

    SITEMAP_FIRST = "sitemap-first"
    HYBRID = "hybrid"
    BREADTH_FIRST = "breadth-first"


class SitemapType(str, Enum):
    """Kind of sitemap location probed during discovery."""

    INDEX = "index"
    STANDARD = "standard"
    COMPRESSED = "compressed"
    NESTED = "nested"


class UrlSource(str, Enum):
    """Where a frontier URL came from."""

    SITEMAP = "sitemap"
    DISCOVERED = "discovered"
    MANUAL = "manual"


class CrawlState(str, Enum):
    """Lifecycle states of one crawl invocation."""

    PLANNING = "planning"
    SEEDING = "seeding"
    DRAINING = "draining"
    COMPLETED = "completed"
    FAILED = "failed"


class ContentClass(str, Enum):
    """URL classes used by the valuable-content filter."""

    BINARY = "binary"
    ADMIN = "admin"
    TRACKING = "tracking"
    OVERSIZED = "oversized"
    VALUABLE = "valuable"


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string for records."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(frozen=True, slots=True)
class FrontierItem:
    """A crawl candidate tracked by the frontier."""

    url: str
    depth: int
    normalized_url: str
    source: UrlSource = UrlSource.DISCOVERED
    referrer: str | None = None
    discovered_at: str = field(default_factory=utc_now_iso)


@dataclass(frozen=True, slots=True)
class CrawledPageData:
    """One fetched (or attempted) page, immutable once created."""

    url: str
    title: str
    content: str
    depth: int
    status: PageStatus = PageStatus.SUCCESS
    crawled_at: str = field(default_factory=utc_now_iso)
    response_time: int | None = None
    status_code: int | None = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == PageStatus.SUCCESS

    @classmethod
    def failed(
        cls,
        *,
        url: str,
        depth: int,
        message: str,
        status_code: int | None = None,
        response_time: int | None = None,
    ) -> "CrawledPageData":
        return cls(
            url=url,
            title="",
            content="",
            depth=depth,
            status=PageStatus.FAILED,
            response_time=response_time,
            status_code=status_code,
            error_message=message,
        )

    @classmethod
    def skipped(cls, *, url: str, depth: int, title: str, reason: str) -> "CrawledPageData":
        return cls(
            url=url,
            title=title,
            content="",
            depth=depth,
            status=PageStatus.SKIPPED,
            error_message=reason,
        )

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "depth": self.depth,
            "status": self.status.value,
            "crawled_at": self.crawled_at,
            "response_time": self.response_time,
            "status_code": self.status_code,
            "error_message": self.error_message,
        }


@dataclass(frozen=True, slots=True)
class UrlEvaluation:
    """Policy verdict on one URL at one depth."""

    should_crawl: bool
    reason: str
    priority: UrlPriority
    estimated_value: float

    def to_json(self) -> JSONDict:
        return {
            "should_crawl": self.should_crawl,
            "reason": self.reason,
            "priority": self.priority.value,
            "estimated_value": self.estimated_value,
        }


@dataclass(frozen=True, slots=True)
class UrlPriorityScore:
    """Numeric crawl priority with a human-readable breakdown."""

    priority: int
    reasoning: str
    should_crawl: bool

    def to_json(self) -> JSONDict:
        return {
            "priority": self.priority,
            "reasoning": self.reasoning,
            "should_crawl": self.should_crawl,
        }


@dataclass(frozen=True, slots=True)
class CrawlBudget:
    """Derived, read-only crawl planning artifact."""

    max_pages: int
    max_depth: int
    estimated_time: int
    recommended_concurrency: int
    estimated_cost: float
    risk_level: RiskLevel
    recommendations: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.max_pages > MAX_PAGES_LIMIT or self.max_depth > MAX_DEPTH_LIMIT:
            raise ValueError("CrawlBudget bounds exceed hard limits")

    def to_json(self) -> JSONDict:
        return {
            "max_pages": self.max_pages,
            "max_depth": self.max_depth,
            "estimated_time": self.estimated_time,
            "recommended_concurrency": self.recommended_concurrency,
            "estimated_cost": self.estimated_cost,
            "risk_level": self.risk_level.value,
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Per-page retry settings."""

    max_retries: int
    backoff_multiplier: float

    def to_json(self) -> JSONDict:
        return {
            "max_retries": self.max_retries,
            "backoff_multiplier": self.backoff_multiplier,
        }


@dataclass(frozen=True, slots=True)
class CrawlStrategy:
    """Execution parameters chosen for one crawl."""

    type: StrategyType
    prioritize_sitemaps: bool
    max_concurrency: int
    retry_policy: RetryPolicy

    def to_json(self) -> JSONDict:
        return {
            "type": self.type.value,
            "prioritize_sitemaps": self.prioritize_sitemaps,
            "max_concurrency": self.max_concurrency,
            "retry_policy": self.retry_policy.to_json(),
        }


@dataclass(frozen=True, slots=True)
class SitemapUrlCandidate:
    """One sitemap location to probe; lower priority is tried first."""

    url: str
    priority: int
    type: SitemapType

    def to_json(self) -> JSONDict:
        return {"url": self.url, "priority": self.priority, "type": self.type.value}


@dataclass(frozen=True, slots=True)
class DiscoveryMetrics:
    """Yield of one sitemap discovery run."""

    total_attempts: int
    successful_attempts: int
    success_rate: float
    extracted_url_count: int
    avg_urls_per_sitemap: float

    def to_json(self) -> JSONDict:
        return {
            "total_attempts": self.total_attempts,
            "successful_attempts": self.successful_attempts,
            "success_rate": self.success_rate,
            "extracted_url_count": self.extracted_url_count,
            "avg_urls_per_sitemap": self.avg_urls_per_sitemap,
        }


@dataclass(frozen=True, slots=True)
class SimilarityResult:
    """Near-duplicate verdict between two documents."""

    similarity: float
    hamming_distance: int
    is_duplicate: bool

    def to_json(self) -> JSONDict:
        return {
            "similarity": self.similarity,
            "hamming_distance": self.hamming_distance,
            "is_duplicate": self.is_duplicate,
        }


@dataclass(frozen=True, slots=True)
class KnowledgeItem:
    """Knowledge-base entry produced from one quality page."""

    id: str
    title: str
    content: str
    category: str
    tags: tuple[str, ...]
    relevance_score: float
    source: str
    last_updated: str

    def to_json(self) -> JSONDict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "tags": list(self.tags),
            "relevance_score": self.relevance_score,
            "source": self.source,
            "last_updated": self.last_updated,
        }


@dataclass(frozen=True, slots=True)
class CrawlMetrics:
    """Aggregate quality metrics over one crawl's pages."""

    total_pages: int
    successful_pages: int
    failed_pages: int
    skipped_pages: int
    quality_pages: int
    average_response_time: float
    success_rate: float
    quality_score: float

    def to_json(self) -> JSONDict:
        return {
            "total_pages": self.total_pages,
            "successful_pages": self.successful_pages,
            "failed_pages": self.failed_pages,
            "skipped_pages": self.skipped_pages,
            "quality_pages": self.quality_pages,
            "average_response_time": self.average_response_time,
            "success_rate": self.success_rate,
            "quality_score": self.quality_score,
        }


@dataclass(slots=True)
class CrawlResult:
    """Final output of one crawl."""

    knowledge_items: list[KnowledgeItem] = field(default_factory=list)
    crawled_pages: list[CrawledPageData] = field(default_factory=list)
    total_pages_attempted: int = 0
    successful_pages: int = 0
    failed_pages: int = 0
    skipped_pages: int = 0

    def to_json(self) -> JSONDict:
        return {
            "knowledge_items": [item.to_json() for item in self.knowledge_items],
            "crawled_pages": [page.to_json() for page in self.crawled_pages],
            "total_pages_attempted": self.total_pages_attempted,
            "successful_pages": self.successful_pages,
            "failed_pages": self.failed_pages,
            "skipped_pages": self.skipped_pages,
        }


@dataclass(slots=True)
class FetchResult:
    """Result of attempting to download one URL."""

    requested_url: str
    final_url: str | None
    status_code: int | None
    content_type: str | None
    body: bytes | None
    fetched_at: str = field(default_factory=utc_now_iso)
    elapsed_ms: int | None = None
    attempts: int = 1
    error: str | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return (
            self.error is None
            and self.status_code is not None
            and 200 <= self.status_code < 300
            and self.body is not None
        )

    @property
    def is_html(self) -> bool:
        normalized = (self.content_type or "").split(";", maxsplit=1)[0].strip().lower()
        return not normalized or normalized in {"text/html", "application/xhtml+xml"}

    @property
    def text(self) -> str:
        if not self.body:
            return ""
        return self.body.decode("utf-8", errors="replace")

    def failure_message(self) -> str:
        if self.error:
            return self.error
        if self.status_code is not None:
            return f"HTTP status {self.status_code}"
        return "Unknown fetch failure"


@dataclass(slots=True)
class ParseResult:
    """Result of parsing fetched HTML into title, text and links."""

    url: str
    title: str
    text: str
    out_links: list[str] = field(default_factory=list)
    metadata: dict[str, JSONValue] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.text.strip())


@dataclass(slots=True)
class CrawlReport:
    """Everything one orchestrator run produced, including the plan."""

    seed_url: str
    state: CrawlState
    result: CrawlResult
    budget: CrawlBudget | None = None
    strategy: CrawlStrategy | None = None
    sitemap_used: bool = False
    discovery: DiscoveryMetrics | None = None
    stats: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_json(self) -> JSONDict:
        return {
            "seed_url": self.seed_url,
            "state": self.state.value,
            "result": self.result.to_json(),
            "budget": None if self.budget is None else self.budget.to_json(),
            "strategy": None if self.strategy is None else self.strategy.to_json(),
            "sitemap_used": self.sitemap_used,
            "discovery": None if self.discovery is None else self.discovery.to_json(),
            "stats": self.stats,
            "error": self.error,
        }


__all__ = [
    "ContentClass",
    "CrawlBudget",
    "CrawlMetrics",
    "CrawlReport",
    "CrawlResult",
    "CrawlState",
    "CrawlStrategy",
    "CrawledPageData",
    "DiscoveryMetrics",
    "FetchResult",
    "FrontierItem",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "KnowledgeItem",
    "PageStatus",
    "ParseResult",
    "RetryPolicy",
    "RiskLevel",
    "SimilarityResult",
    "SitemapType",
    "SitemapUrlCandidate",
    "StrategyType",
    "UrlEvaluation",
    "UrlPriority",
    "UrlPriorityScore",
    "UrlSource",
    "utc_now_iso",
]
