"""Turn crawled pages into knowledge items and crawl metrics."""

from __future__ import annotations

import hashlib
import re
import threading
from typing import Iterable, Protocol
from urllib.parse import urlsplit

from .types import (
    CrawledPageData,
    CrawlMetrics,
    CrawlResult,
    KnowledgeItem,
    PageStatus,
    ParseResult,
)

MIN_CONTENT_CHARS = 100
MIN_COLLAPSED_CHARS = 50
MIN_TEXT_RATIO = 0.3

KNOWLEDGE_ID_PREFIX = "website_"
KNOWLEDGE_CATEGORY = "general"

_MARKUP_RE = re.compile(r"<[^>]*>")
_QUERY_OR_FRAGMENT_RE = re.compile(r"[#?].*$", re.DOTALL)


class PageStage(Protocol):
    """Receives every finished page from the orchestrator, in worker threads."""

    def handle(self, page: CrawledPageData, document: ParseResult | None) -> None: ...


class CollectingStage:
    """`PageStage` that keeps every page in arrival order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pages: list[CrawledPageData] = []

    def handle(self, page: CrawledPageData, document: ParseResult | None) -> None:
        with self._lock:
            self._pages.append(page)

    @property
    def pages(self) -> list[CrawledPageData]:
        with self._lock:
            return list(self._pages)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pages)


def knowledge_item_id(url: str) -> str:
    """Stable id for a page URL; query string and fragment do not count."""

    url_for_id = _QUERY_OR_FRAGMENT_RE.sub("", url)
    digest = hashlib.sha256(url_for_id.encode("utf-8")).hexdigest()
    return f"{KNOWLEDGE_ID_PREFIX}{digest[:16]}"


class ResultProcessor:
    """Quality filtering, metrics and knowledge-item generation."""

    def process(self, pages: Iterable[CrawledPageData]) -> CrawlResult:
        pages = list(pages)
        quality_pages = [page for page in pages if self.is_quality_content(page)]
        metrics = self.calculate_metrics(pages)

        return CrawlResult(
            knowledge_items=self.generate_knowledge_items(quality_pages),
            crawled_pages=quality_pages,
            total_pages_attempted=metrics.total_pages,
            successful_pages=metrics.successful_pages,
            failed_pages=metrics.failed_pages,
            skipped_pages=metrics.skipped_pages,
        )

    @staticmethod
    def is_quality_content(page: CrawledPageData) -> bool:
        if page.status != PageStatus.SUCCESS:
            return False

        content = page.content or ""
        if len(content) < MIN_CONTENT_CHARS:
            return False

        if not page.title or not page.title.strip():
            return False

        if len(re.sub(r"\s+", " ", content).strip()) < MIN_COLLAPSED_CHARS:
            return False

        without_markup = _MARKUP_RE.sub("", content)
        return len(without_markup) / len(content) >= MIN_TEXT_RATIO

    def calculate_metrics(self, pages: Iterable[CrawledPageData]) -> CrawlMetrics:
        pages = list(pages)
        total = len(pages)
        successful = [page for page in pages if page.status == PageStatus.SUCCESS]
        failed = sum(1 for page in pages if page.status == PageStatus.FAILED)
        skipped = sum(1 for page in pages if page.status == PageStatus.SKIPPED)
        quality = [page for page in successful if self.is_quality_content(page)]

        timed = [page.response_time for page in successful if page.response_time is not None]
        average_response_time = sum(timed) / len(timed) if timed else 0.0
        success_rate = len(successful) / total * 100 if total else 0.0

        return CrawlMetrics(
            total_pages=total,
            successful_pages=len(successful),
            failed_pages=failed,
            skipped_pages=skipped,
            quality_pages=len(quality),
            average_response_time=round(average_response_time, 2),
            success_rate=round(success_rate, 2),
            quality_score=round(self._quality_score(total, successful, quality), 2),
        )

    def generate_knowledge_items(self, pages: Iterable[CrawledPageData]) -> list[KnowledgeItem]:
        """One item per successful page; callers pass quality-filtered pages."""

        return [
            self.knowledge_item(page)
            for page in pages
            if page.status == PageStatus.SUCCESS
        ]

    def knowledge_item(self, page: CrawledPageData) -> KnowledgeItem:
        path = urlsplit(page.url).path or "/"
        title = page.title if path == "/" else f"{page.title} | {path}"

        return KnowledgeItem(
            id=knowledge_item_id(page.url),
            title=title,
            content=page.content,
            category=KNOWLEDGE_CATEGORY,
            tags=("website", "crawled", f"depth-{page.depth}"),
            relevance_score=self.relevance_score(page),
            source=page.url,
            last_updated=page.crawled_at,
        )

    @staticmethod
    def relevance_score(page: CrawledPageData) -> float:
        score = 0.5
        length = len(page.content)
        for tier in (500, 1000, 2000):
            if length > tier:
                score += 0.1

        score -= page.depth * 0.05

        if page.response_time and page.response_time < 1000:
            score += 0.05

        if 10 < len(page.title) < 100:
            score += 0.1

        return round(max(0.1, min(1.0, score)), 4)

    @staticmethod
    def _quality_score(
        total: int,
        successful: list[CrawledPageData],
        quality: list[CrawledPageData],
    ) -> float:
        if total == 0:
            return 0.0

        success_rate = len(successful) / total * 100
        quality_rate = len(quality) / len(successful) * 100 if successful else 0.0
        average_length = (
            sum(len(page.content) for page in quality) / len(quality) if quality else 0.0
        )
        length_score = min(average_length / 1000 * 20, 20)

        return min(success_rate * 0.4 + quality_rate * 0.4 + length_score, 100.0)


__all__ = [
    "CollectingStage",
    "KNOWLEDGE_CATEGORY",
    "PageStage",
    "ResultProcessor",
    "knowledge_item_id",
]
