"""Focused website crawler: policy, planning, discovery, and crawl orchestration."""

from .budget import BudgetCalculator
from .config import CrawlConfig, CrawlerConfig, CrawlSettings, load_config, save_config
from .dedup import DeduplicationResult, NearDuplicateIndex, content_hash, deduplicate_pages
from .errors import (
    CrawlError,
    FetchFailure,
    InvalidUrlRequest,
    ParseFailure,
    PlanningError,
    RobotsDisallowed,
    SettingsOutOfRange,
    UnreachableTarget,
)
from .fetcher import Fetcher
from .frontier import EnqueueResult, EnqueueStatus, Frontier
from .orchestrator import CrawlOrchestrator, crawl
from .parsers import HTMLParser, HTMLParserConfig, HtmlDocument
from .policy import CrawlPolicy
from .processor import CollectingStage, PageStage, ResultProcessor, knowledge_item_id
from .robots import RobotsChecker, RobotsTxtChecker
from .similarity import SimHash
from .sitemap import SitemapDiscovery, SitemapDiscoveryResult
from .stats import StatsCollector
from .strategy import StrategySelector
from .types import (
    ContentClass,
    CrawlBudget,
    CrawledPageData,
    CrawlMetrics,
    CrawlReport,
    CrawlResult,
    CrawlState,
    CrawlStrategy,
    FetchResult,
    FrontierItem,
    KnowledgeItem,
    PageStatus,
    ParseResult,
    RetryPolicy,
    RiskLevel,
    SimilarityResult,
    SitemapUrlCandidate,
    StrategyType,
    UrlEvaluation,
    UrlPriority,
    UrlSource,
    utc_now_iso,
)
from .url import are_equivalent, canonical_of, extract_links_from_html, normalize_url, resolve_url, url_content_hash
from .validation import CrawlValidator

__all__ = [
    "BudgetCalculator",
    "CollectingStage",
    "ContentClass",
    "CrawlBudget",
    "CrawlConfig",
    "CrawlError",
    "CrawlMetrics",
    "CrawlOrchestrator",
    "CrawlPolicy",
    "CrawlReport",
    "CrawlResult",
    "CrawlSettings",
    "CrawlState",
    "CrawlStrategy",
    "CrawlValidator",
    "CrawledPageData",
    "CrawlerConfig",
    "DeduplicationResult",
    "EnqueueResult",
    "EnqueueStatus",
    "FetchFailure",
    "FetchResult",
    "Fetcher",
    "Frontier",
    "FrontierItem",
    "HTMLParser",
    "HTMLParserConfig",
    "HtmlDocument",
    "InvalidUrlRequest",
    "KnowledgeItem",
    "NearDuplicateIndex",
    "PageStage",
    "PageStatus",
    "ParseFailure",
    "ParseResult",
    "PlanningError",
    "ResultProcessor",
    "RetryPolicy",
    "RiskLevel",
    "RobotsChecker",
    "RobotsDisallowed",
    "RobotsTxtChecker",
    "SettingsOutOfRange",
    "SimHash",
    "SimilarityResult",
    "SitemapDiscovery",
    "SitemapDiscoveryResult",
    "SitemapUrlCandidate",
    "StatsCollector",
    "StrategySelector",
    "StrategyType",
    "UnreachableTarget",
    "UrlEvaluation",
    "UrlPriority",
    "UrlSource",
    "are_equivalent",
    "canonical_of",
    "content_hash",
    "crawl",
    "deduplicate_pages",
    "extract_links_from_html",
    "knowledge_item_id",
    "load_config",
    "normalize_url",
    "resolve_url",
    "save_config",
    "url_content_hash",
    "utc_now_iso",
]
