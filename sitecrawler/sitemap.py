"""Sitemap discovery: candidate locations, XML validation, URL extraction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from .constants import DEFAULT_SITEMAP_MAX_RECURSION
from .policy import CrawlPolicy
from .types import DiscoveryMetrics, SitemapType, SitemapUrlCandidate
from .url import hostname_of, normalize_url

logger = logging.getLogger(__name__)


SITEMAP_LOCATIONS = (
    (SitemapType.INDEX, "/sitemap_index.xml", 1),
    (SitemapType.STANDARD, "/sitemap.xml", 2),
    (SitemapType.COMPRESSED, "/sitemap.xml.gz", 3),
    (SitemapType.NESTED, "/sitemaps/sitemap.xml", 4),
)

# Sitemap transport: URL -> XML text, or None when the fetch failed.
FetchText = Callable[[str], "str | None"]


@dataclass(slots=True)
class SitemapDocument:
    """Entries of one parsed sitemap document."""

    page_urls: list[str] = field(default_factory=list)
    sitemap_urls: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SitemapDiscoveryResult:
    """Outcome of probing a site's sitemap locations."""

    urls: list[str]
    metrics: DiscoveryMetrics
    sitemap_url: str | None = None

    @property
    def found(self) -> bool:
        return bool(self.urls)


def _is_well_formed_loc(value: str) -> bool:
    try:
        parsed = urlsplit(value)
    except ValueError:
        return False
    return parsed.scheme.lower() in {"http", "https"} and bool(parsed.hostname)


def _parse_xml(xml: str) -> BeautifulSoup | None:
    if not xml or not xml.strip():
        return None
    soup = BeautifulSoup(xml, "xml")
    if soup.find("urlset") is None and soup.find("sitemapindex") is None:
        return None
    return soup


class SitemapDiscovery:
    """Generate, validate and walk sitemap candidates for one site."""

    def __init__(
        self,
        policy: CrawlPolicy | None = None,
        *,
        max_recursion: int = DEFAULT_SITEMAP_MAX_RECURSION,
    ) -> None:
        if max_recursion < 0:
            raise ValueError("max_recursion must be >= 0")
        self.policy = policy or CrawlPolicy()
        self.max_recursion = max_recursion

    @staticmethod
    def candidates(
        base_url: str,
        *,
        prioritize_compressed: bool = False,
        max_attempts: int | None = None,
    ) -> list[SitemapUrlCandidate]:
        """Sitemap URLs to try, sorted ascending by priority.

        URLs are built by plain concatenation onto `base_url`.
        """

        entries: list[SitemapUrlCandidate] = []
        for sitemap_type, suffix, priority in SITEMAP_LOCATIONS:
            if prioritize_compressed and sitemap_type == SitemapType.COMPRESSED:
                # Ties with the index; listed first so it is tried first.
                entries.insert(0, SitemapUrlCandidate(base_url + suffix, 1, sitemap_type))
                continue
            entries.append(SitemapUrlCandidate(base_url + suffix, priority, sitemap_type))

        entries.sort(key=lambda candidate: candidate.priority)
        if max_attempts is not None and max_attempts > 0:
            entries = entries[:max_attempts]
        return entries

    @staticmethod
    def is_valid_sitemap_response(xml: str, base_url: str) -> bool:
        """Structural check of a fetched sitemap.

        Requires a `<urlset>` or `<sitemapindex>` root, at least one well-formed
        `<loc>`, and at least one `<loc>` on exactly the base URL's host.
        """

        soup = _parse_xml(xml)
        if soup is None:
            return False

        base_host = hostname_of(base_url)
        locs = [loc.get_text(strip=True) for loc in soup.find_all("loc")]
        well_formed = [loc for loc in locs if _is_well_formed_loc(loc)]
        if not well_formed or not base_host:
            return False

        return any(hostname_of(loc) == base_host for loc in well_formed)

    def parse_document(self, xml: str, base_url: str) -> SitemapDocument:
        """Split a sitemap into same-host page URLs and child sitemap URLs.

        Page URLs must also pass the lead-generation content filter.
        """

        document = SitemapDocument()
        soup = _parse_xml(xml)
        if soup is None:
            return document

        base_host = hostname_of(base_url)

        for entry in soup.find_all("sitemap"):
            loc = entry.find("loc")
            if loc is None:
                continue
            value = loc.get_text(strip=True)
            if _is_well_formed_loc(value) and hostname_of(value) == base_host:
                document.sitemap_urls.append(value)

        for entry in soup.find_all("url"):
            loc = entry.find("loc")
            if loc is None:
                continue
            value = loc.get_text(strip=True)
            if not _is_well_formed_loc(value) or hostname_of(value) != base_host:
                continue
            if not self.policy.is_valuable_lead_gen_content(value):
                continue
            document.page_urls.append(value)

        return document

    @staticmethod
    def metrics(attempted: int, successful: int, extracted_count: int) -> DiscoveryMetrics:
        return DiscoveryMetrics(
            total_attempts=attempted,
            successful_attempts=successful,
            success_rate=successful / attempted if attempted > 0 else 0.0,
            extracted_url_count=extracted_count,
            avg_urls_per_sitemap=extracted_count / successful if successful > 0 else 0.0,
        )

    def discover(
        self,
        base_url: str,
        fetch_text: FetchText,
        *,
        prioritize_compressed: bool = False,
        max_attempts: int | None = None,
    ) -> SitemapDiscoveryResult:
        """Probe candidates in order and stop at the first one that yields URLs.

        Child sitemaps of an index are followed depth-first, at most
        `max_recursion` levels below the candidate.
        """

        attempted = 0
        successful = 0
        urls: list[str] = []
        seen: set[str] = set()

        for candidate in self.candidates(
            base_url,
            prioritize_compressed=prioritize_compressed,
            max_attempts=max_attempts,
        ):
            tally = _Tally()
            self._walk(candidate.url, base_url, fetch_text, 0, tally, urls, seen)
            attempted += tally.attempted
            successful += tally.successful

            if urls:
                logger.info(
                    "Sitemap %s yielded %d URLs (%d documents)",
                    candidate.url,
                    len(urls),
                    tally.successful,
                )
                return SitemapDiscoveryResult(
                    urls=urls,
                    metrics=self.metrics(attempted, successful, len(urls)),
                    sitemap_url=candidate.url,
                )

        logger.info("No usable sitemap found for %s after %d attempts", base_url, attempted)
        return SitemapDiscoveryResult(
            urls=[],
            metrics=self.metrics(attempted, successful, 0),
        )

    def _walk(
        self,
        sitemap_url: str,
        base_url: str,
        fetch_text: FetchText,
        level: int,
        tally: "_Tally",
        urls: list[str],
        seen: set[str],
    ) -> None:
        tally.attempted += 1
        xml = fetch_text(sitemap_url)
        if xml is None or not self.is_valid_sitemap_response(xml, base_url):
            logger.debug("Sitemap candidate rejected: %s", sitemap_url)
            return

        tally.successful += 1
        document = self.parse_document(xml, base_url)

        for url in document.page_urls:
            key = normalize_url(url)
            if key in seen:
                continue
            seen.add(key)
            urls.append(url)

        if level >= self.max_recursion:
            if document.sitemap_urls:
                logger.debug(
                    "Not following %d nested sitemaps below %s (recursion limit %d)",
                    len(document.sitemap_urls),
                    sitemap_url,
                    self.max_recursion,
                )
            return

        for child in document.sitemap_urls:
            self._walk(child, base_url, fetch_text, level + 1, tally, urls, seen)


@dataclass(slots=True)
class _Tally:
    attempted: int = 0
    successful: int = 0


__all__ = [
    "FetchText",
    "SITEMAP_LOCATIONS",
    "SitemapDiscovery",
    "SitemapDiscoveryResult",
    "SitemapDocument",
]
