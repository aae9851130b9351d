"""Crawl policy: domain scoping, content-value filtering and URL scoring.

Every rule is a pattern table keyed by what it detects, so the filters stay
data instead of branching logic. All functions are pure.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Pattern
from urllib.parse import parse_qsl, urlsplit

from .config import CrawlSettings
from .constants import MAX_DEPTH_LIMIT
from .types import ContentClass, UrlEvaluation, UrlPriority
from .url import hostname_of


MAX_URL_LENGTH = 200
LONG_URL_PENALTY_LENGTH = 100

REASON_ACCEPTED = "Meets all crawling criteria"
REASON_OUTSIDE_DOMAIN = "Outside target domain"
REASON_LOW_VALUE = "Low-value content type or pattern"

PRIORITY_URL_PATTERNS = (
    "/about",
    "/services",
    "/products",
    "/blog",
    "/help",
    "/faq",
    "/support",
    "/documentation",
)


def _compile(*patterns: str) -> tuple[Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


_SEGMENT_END = r"(?:[/.]|$)"

# Matched against the URL path.
BINARY_EXTENSION_PATTERNS = _compile(
    r"\.(jpg|jpeg|png|gif|bmp|webp|svg|ico|tiff?)$",
    r"\.(pdf|doc|docx|xls|xlsx|ppt|pptx|odt|rtf)$",
    r"\.(zip|rar|tar|gz|tgz|7z|exe|dmg|msi|apk)$",
    r"\.(mp4|avi|mov|wmv|mkv|webm|mp3|wav|ogg|flac)$",
    r"\.(css|js|xml|json|txt|csv|woff2?|ttf|eot)$",
)

ADMIN_PATH_PATTERNS = _compile(
    rf"/(admin|login|logout|api|feed|rss){_SEGMENT_END}",
    rf"/(wp-admin|wp-login|wp-json|wp-content|wp-includes){_SEGMENT_END}",
    rf"/(user|users|account|accounts|profile|settings){_SEGMENT_END}",
    rf"/(cart|checkout|payment|basket){_SEGMENT_END}",
)

# Listing pages that are only low-value when a query string drives them.
QUERY_DRIVEN_PATH_PATTERNS = _compile(rf"/(search|filter){_SEGMENT_END}")

TRACKING_QUERY_PREFIXES = ("utm_",)
TRACKING_QUERY_KEYS = frozenset({"fbclid", "gclid", "msclkid", "mc_cid", "mc_eid"})

# Lead-generation exclusions, grouped by the page family they remove.
LEAD_GEN_EXCLUDED_PATTERNS: dict[str, tuple[Pattern[str], ...]] = {
    "career": _compile(
        rf"/(careers?|jobs?|hiring|vacancies|employment|internships?|join-us){_SEGMENT_END}",
    ),
    "legal": _compile(
        rf"/(privacy|privacy-policy|terms|terms-of-service|terms-and-conditions|tos|legal)"
        rf"{_SEGMENT_END}",
        rf"/(cookies?|cookie-policy|disclaimer|gdpr|imprint|impressum|sitemap){_SEGMENT_END}",
    ),
    "team": _compile(
        rf"/(team|our-team|staff|people|leadership|board|employees){_SEGMENT_END}",
    ),
    "account": _compile(
        rf"/(register|signup|sign-up|signin|sign-in|password|reset-password){_SEGMENT_END}",
        rf"/(my-account|dashboard|portal|subscribe|unsubscribe){_SEGMENT_END}",
    ),
    "error": _compile(
        rf"/(404|500|error|errors|not-found|page-not-found|maintenance){_SEGMENT_END}",
    ),
}

EDITORIAL_PATH_PATTERNS = _compile(
    rf"/(blog|blogs|news|articles?|posts?|press|events?|stories){_SEGMENT_END}",
)

SERVICE_KEYWORD_PATTERNS = _compile(
    r"(service|solution|product|pricing|price|case-stud|customer-stor|guide|how-to)",
    r"(feature|benefit|demo|trial|consult|implementation|integration|onboarding)",
)

HIGH_VALUE_PRIORITY_PATTERNS = _compile(
    r"/(about|services|products|solutions)",
    r"/(blog|articles|news|resources)",
    r"/(help|support|faq|documentation)",
)

MEDIUM_VALUE_PRIORITY_PATTERNS = _compile(
    r"/(category|section|topic)",
    r"/[a-z-]+/$",
    r"/(contact|location|team)",
)


@dataclass(frozen=True, slots=True)
class ValueBonus:
    """Score added to a URL's estimated value when its path matches."""

    pattern: Pattern[str]
    bonus: float


VALUE_BONUSES = (
    ValueBonus(re.compile(r"/(about|services|products)", re.IGNORECASE), 0.3),
    ValueBonus(re.compile(r"/(blog|articles|news)", re.IGNORECASE), 0.2),
    ValueBonus(re.compile(r"/(help|support|faq)", re.IGNORECASE), 0.2),
    ValueBonus(re.compile(r"/(contact|team)", re.IGNORECASE), 0.1),
)


def _split(url: str) -> tuple[str, str]:
    """Return (path, query) for `url`; unparseable input is treated as a path."""

    try:
        parsed = urlsplit(url.strip())
    except ValueError:
        return url, ""
    return parsed.path, parsed.query


def _has_tracking_params(url: str, query: str) -> bool:
    if re.search(r"[?&]utm_", url, re.IGNORECASE):
        return True
    for key, _ in parse_qsl(query, keep_blank_values=True):
        lowered = key.strip().lower()
        if lowered in TRACKING_QUERY_KEYS:
            return True
        if any(lowered.startswith(prefix) for prefix in TRACKING_QUERY_PREFIXES):
            return True
    return False


def _any_match(patterns: tuple[Pattern[str], ...], text: str) -> bool:
    return any(pattern.search(text) for pattern in patterns)


class CrawlPolicy:
    """Decides which URLs are worth crawling and how urgently."""

    def evaluate(
        self,
        url: str,
        base_url: str,
        depth: int,
        settings: CrawlSettings,
    ) -> UrlEvaluation:
        """Evaluate one URL discovered at `depth` against the crawl request.

        Checks run in order and stop at the first rejection: depth limit,
        target domain, content value.
        """

        max_depth = min(settings.max_depth, MAX_DEPTH_LIMIT)
        if depth >= max_depth:
            return UrlEvaluation(
                should_crawl=False,
                reason=f"Exceeds maximum depth limit ({max_depth})",
                priority=UrlPriority.LOW,
                estimated_value=0,
            )

        if not self.is_same_domain(url, base_url):
            return UrlEvaluation(
                should_crawl=False,
                reason=REASON_OUTSIDE_DOMAIN,
                priority=UrlPriority.LOW,
                estimated_value=0,
            )

        if not self.is_valuable_content(url):
            return UrlEvaluation(
                should_crawl=False,
                reason=REASON_LOW_VALUE,
                priority=UrlPriority.LOW,
                estimated_value=0,
            )

        return UrlEvaluation(
            should_crawl=True,
            reason=REASON_ACCEPTED,
            priority=self.priority(url, depth),
            estimated_value=self.estimated_value(url, depth),
        )

    def should_crawl(self, url: str, base_url: str, depth: int, settings: CrawlSettings) -> bool:
        return self.evaluate(url, base_url, depth, settings).should_crawl

    @staticmethod
    def is_same_domain(url: str, base_url: str) -> bool:
        """Exact hostname match; subdomains and `www.` variants do not count."""

        host = hostname_of(url)
        return bool(host) and host == hostname_of(base_url)

    def classify_content(self, url: str) -> ContentClass:
        path, query = _split(url)

        if _any_match(BINARY_EXTENSION_PATTERNS, path):
            return ContentClass.BINARY
        if _any_match(ADMIN_PATH_PATTERNS, path):
            return ContentClass.ADMIN
        if query and _any_match(QUERY_DRIVEN_PATH_PATTERNS, path):
            return ContentClass.ADMIN
        if "#" in url or _has_tracking_params(url, query):
            return ContentClass.TRACKING
        if len(url) > MAX_URL_LENGTH:
            return ContentClass.OVERSIZED
        return ContentClass.VALUABLE

    def is_valuable_content(self, url: str) -> bool:
        return self.classify_content(url) == ContentClass.VALUABLE

    def lead_gen_exclusion(self, url: str) -> str | None:
        """Name the page family that disqualifies `url` for lead generation."""

        if not self.is_valuable_content(url):
            return self.classify_content(url).value

        path, _ = _split(url)
        for family, patterns in LEAD_GEN_EXCLUDED_PATTERNS.items():
            if _any_match(patterns, path):
                return family

        if _any_match(EDITORIAL_PATH_PATTERNS, path) and not _any_match(
            SERVICE_KEYWORD_PATTERNS, path
        ):
            return "editorial"
        return None

    def is_valuable_lead_gen_content(self, url: str) -> bool:
        return self.lead_gen_exclusion(url) is None

    @staticmethod
    def priority(url: str, depth: int) -> UrlPriority:
        if depth == 0:
            return UrlPriority.HIGH

        path, _ = _split(url)
        if _any_match(HIGH_VALUE_PRIORITY_PATTERNS, path):
            return UrlPriority.HIGH if depth <= 1 else UrlPriority.MEDIUM
        if _any_match(MEDIUM_VALUE_PRIORITY_PATTERNS, path):
            return UrlPriority.MEDIUM if depth <= 2 else UrlPriority.LOW
        return UrlPriority.MEDIUM if depth <= 1 else UrlPriority.LOW

    @staticmethod
    def estimated_value(url: str, depth: int) -> float:
        path, _ = _split(url)

        value = 0.5 - 0.1 * depth
        for rule in VALUE_BONUSES:
            if rule.pattern.search(path):
                value += rule.bonus

        segments = [segment for segment in path.split("/") if segment]
        if len(segments) <= 3 and not any(re.search(r"\d", segment) for segment in segments):
            value += 0.1

        if len(url) > LONG_URL_PENALTY_LENGTH:
            value -= 0.1

        return round(min(1.0, max(0.1, value)), 2)

    @staticmethod
    def priority_url_patterns() -> list[str]:
        """Path prefixes worth crawling first on a typical business site."""

        return list(PRIORITY_URL_PATTERNS)


__all__ = [
    "ADMIN_PATH_PATTERNS",
    "BINARY_EXTENSION_PATTERNS",
    "CrawlPolicy",
    "LEAD_GEN_EXCLUDED_PATTERNS",
    "MAX_URL_LENGTH",
    "PRIORITY_URL_PATTERNS",
    "REASON_ACCEPTED",
    "REASON_LOW_VALUE",
    "REASON_OUTSIDE_DOMAIN",
    "VALUE_BONUSES",
]
