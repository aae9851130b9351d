"""Crawl budget planning: limits, time/cost estimates, risk and advice."""

from __future__ import annotations

import logging
import math

from .config import CrawlSettings
from .constants import MAX_DEPTH_LIMIT, MAX_PAGES_LIMIT
from .types import CrawlBudget, RiskLevel

logger = logging.getLogger(__name__)


SECONDS_PER_PAGE = 2.5
DEPTH_TIME_FACTOR = 0.2
NETWORK_BUFFER = 1.2

COST_PER_SECOND = 0.001
COST_PER_PAGE_FETCH = 0.005
COST_PER_PAGE_PROCESSING = 0.002

REC_REDUCE_SCOPE = "Consider reducing page count or depth for faster crawling"
REC_HIGH_RISK = "High risk crawl - consider splitting into smaller batches"
REC_MEDIUM_RISK = "Medium risk crawl - implement retry logic for failed pages"
REC_SHALLOW_WIDE = "Shallow but wide crawl - consider increasing concurrency"
REC_DEEP_NARROW = "Deep but narrow crawl - single-threaded approach recommended"
REC_LONG_CRAWL = "Long crawl detected - implement progress tracking and resumption"
REC_OPTIMAL = "Optimal crawl configuration - proceed with confidence"


class BudgetCalculator:
    """Derive a `CrawlBudget` from requested settings.

    Every method is deterministic; the same settings always yield an equal
    budget.
    """

    def plan(self, settings: CrawlSettings) -> CrawlBudget:
        max_pages = min(settings.max_pages, MAX_PAGES_LIMIT)
        max_depth = min(settings.max_depth, MAX_DEPTH_LIMIT)

        estimated_time = self.estimate_crawl_time(max_pages, max_depth)
        concurrency = self.calculate_optimal_concurrency(max_pages)
        estimated_cost = self.estimate_crawl_cost(max_pages, estimated_time)
        risk_level = self.assess_crawl_risk(max_pages, max_depth, concurrency)
        recommendations = self.recommendations(
            max_pages, max_depth, estimated_time, risk_level
        )

        if max_pages != settings.max_pages or max_depth != settings.max_depth:
            logger.info(
                "Clamped crawl request from pages=%d depth=%d to pages=%d depth=%d",
                settings.max_pages,
                settings.max_depth,
                max_pages,
                max_depth,
            )

        return CrawlBudget(
            max_pages=max_pages,
            max_depth=max_depth,
            estimated_time=estimated_time,
            recommended_concurrency=concurrency,
            estimated_cost=estimated_cost,
            risk_level=risk_level,
            recommendations=tuple(recommendations),
        )

    @staticmethod
    def estimate_crawl_time(pages: int, depth: int) -> int:
        """Estimated wall-clock seconds, including a retry/network buffer."""

        raw = pages * SECONDS_PER_PAGE * (1 + (depth - 1) * DEPTH_TIME_FACTOR) * NETWORK_BUFFER
        # Rounding first keeps float noise (e.g. 54.00000000001) from adding a second.
        return int(math.ceil(round(raw, 6)))

    @staticmethod
    def calculate_optimal_concurrency(pages: int) -> int:
        if pages <= 10:
            return 1
        if pages <= 50:
            return 2
        if pages <= 100:
            return 3
        return min(4, math.ceil(pages / 30))

    @staticmethod
    def estimate_crawl_cost(pages: int, estimated_time: int) -> float:
        cost = (
            estimated_time * COST_PER_SECOND
            + pages * COST_PER_PAGE_FETCH
            + pages * COST_PER_PAGE_PROCESSING
        )
        return round(cost, 3)

    @staticmethod
    def assess_crawl_risk(pages: int, depth: int, concurrency: int) -> RiskLevel:
        score = 0

        if pages > 75:
            score += 2
        elif pages > 25:
            score += 1

        if depth > 4:
            score += 2
        elif depth > 2:
            score += 1

        if concurrency > 3:
            score += 1

        if score >= 4:
            return RiskLevel.HIGH
        if score >= 2:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    @staticmethod
    def recommendations(
        pages: int,
        depth: int,
        estimated_time: int,
        risk_level: RiskLevel,
    ) -> list[str]:
        """Human-readable advice; the optimal message only when nothing else applies."""

        advice: list[str] = []

        if estimated_time > 600:
            advice.append(REC_REDUCE_SCOPE)

        if risk_level == RiskLevel.HIGH:
            advice.append(REC_HIGH_RISK)
        elif risk_level == RiskLevel.MEDIUM:
            advice.append(REC_MEDIUM_RISK)

        if pages > 50 and depth <= 2:
            advice.append(REC_SHALLOW_WIDE)

        if pages < 20 and depth >= 4:
            advice.append(REC_DEEP_NARROW)

        if estimated_time > 300:
            advice.append(REC_LONG_CRAWL)

        if not advice:
            advice.append(REC_OPTIMAL)

        return advice


__all__ = [
    "BudgetCalculator",
    "REC_DEEP_NARROW",
    "REC_HIGH_RISK",
    "REC_LONG_CRAWL",
    "REC_MEDIUM_RISK",
    "REC_OPTIMAL",
    "REC_REDUCE_SCOPE",
    "REC_SHALLOW_WIDE",
]
