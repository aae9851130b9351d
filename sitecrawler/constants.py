"""Default values and hard limits shared by crawler modules."""

from __future__ import annotations

# Hard ceilings applied to every crawl request.
MAX_PAGES_LIMIT = 100
MAX_DEPTH_LIMIT = 5
MIN_PAGES = 1
MIN_DEPTH = 1

DEFAULT_MAX_PAGES = 20
DEFAULT_MAX_DEPTH = 3
DEFAULT_RESPECT_ROBOTS_TXT = True
DEFAULT_CRAWL_FREQUENCY = "weekly"
CRAWL_FREQUENCIES = ("manual", "daily", "weekly", "monthly")

# Fetch layer.
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VALIDATION_USER_AGENT = "Mozilla/5.0 (compatible; ChatbotCrawler/1.0)"
DEFAULT_HTTP_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}
DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_HEAD_TIMEOUT_SECONDS = 10.0
DEFAULT_ROBOTS_TIMEOUT_SECONDS = 10.0
DEFAULT_RETRY_BASE_DELAY_SECONDS = 0.5
DEFAULT_RATE_LIMIT_SECONDS = 0.0
DEFAULT_CRAWL_TIMEOUT_SECONDS: float | None = None

# Sitemaps.
DEFAULT_SITEMAP_MAX_RECURSION = 2
DEFAULT_MAX_SITEMAP_ATTEMPTS = 4

# Near-duplicate detection.
DEFAULT_DEDUP_ENABLED = True
DEFAULT_SIMHASH_BITS = 64
DEFAULT_DUPLICATE_THRESHOLD = 0.9

# Memory budget per frontier slot when sizing queues.
BYTES_PER_MEGABYTE = 1024 * 1024

JSON_INDENT = 2
SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")


__all__ = [
    "BYTES_PER_MEGABYTE",
    "CRAWL_FREQUENCIES",
    "DEFAULT_CRAWL_FREQUENCY",
    "DEFAULT_CRAWL_TIMEOUT_SECONDS",
    "DEFAULT_DEDUP_ENABLED",
    "DEFAULT_DUPLICATE_THRESHOLD",
    "DEFAULT_HEAD_TIMEOUT_SECONDS",
    "DEFAULT_HTTP_HEADERS",
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_MAX_PAGES",
    "DEFAULT_MAX_SITEMAP_ATTEMPTS",
    "DEFAULT_RATE_LIMIT_SECONDS",
    "DEFAULT_RESPECT_ROBOTS_TXT",
    "DEFAULT_RETRY_BASE_DELAY_SECONDS",
    "DEFAULT_ROBOTS_TIMEOUT_SECONDS",
    "DEFAULT_SIMHASH_BITS",
    "DEFAULT_SITEMAP_MAX_RECURSION",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_USER_AGENT",
    "JSON_INDENT",
    "MAX_DEPTH_LIMIT",
    "MAX_PAGES_LIMIT",
    "MIN_DEPTH",
    "MIN_PAGES",
    "SUPPORTED_CONFIG_SUFFIXES",
    "VALIDATION_USER_AGENT",
]
