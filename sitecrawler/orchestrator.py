"""Crawl orchestration: planning, seeding and draining the frontier."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Sequence
from urllib.parse import urlsplit

from .budget import BudgetCalculator
from .config import CrawlerConfig, CrawlSettings
from .dedup import NearDuplicateIndex
from .errors import CrawlError, FetchFailure, ParseFailure
from .fetcher import Fetcher
from .frontier import Frontier
from .parsers import HTMLParser
from .policy import CrawlPolicy
from .processor import CollectingStage, PageStage, ResultProcessor
from .robots import RobotsChecker, RobotsTxtChecker
from .similarity import SimHash
from .sitemap import SitemapDiscovery
from .stats import StatsCollector
from .strategy import StrategySelector
from .types import (
    CrawlBudget,
    CrawledPageData,
    CrawlReport,
    CrawlResult,
    CrawlState,
    CrawlStrategy,
    DiscoveryMetrics,
    FetchResult,
    FrontierItem,
    ParseResult,
    UrlSource,
)
from .validation import CrawlValidator

logger = logging.getLogger(__name__)

POP_TIMEOUT_SECONDS = 0.5
IDLE_POLL_SECONDS = 0.2
WORKER_JOIN_TIMEOUT_SECONDS = 5.0


def site_root(url: str) -> str:
    """`scheme://netloc` of `url`, the base sitemap locations hang off."""

    parsed = urlsplit(url)
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


@dataclass(slots=True)
class _CrawlRun:
    """Mutable state of one `run` call; never shared between runs."""

    seed_url: str
    settings: CrawlSettings
    frontier: Frontier
    collector: CollectingStage
    stats: StatsCollector
    robots: RobotsChecker | None
    duplicates: NearDuplicateIndex | None
    cancel_event: threading.Event
    deadline: float | None
    sitemap_seeded: bool = False
    stop_reason: str | None = None
    stop_lock: threading.Lock = field(default_factory=threading.Lock)
    # Set once the run stops; in-flight fetches abort their retries on it.
    abort: threading.Event = field(default_factory=threading.Event)

    def should_stop(self) -> bool:
        if self.cancel_event.is_set():
            self._mark_stopped("cancelled")
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            self._mark_stopped("crawl timeout")
            return True
        return False

    def _mark_stopped(self, reason: str) -> None:
        with self.stop_lock:
            if self.stop_reason is None:
                self.stop_reason = reason
        self.abort.set()


class CrawlOrchestrator:
    """Run one focused crawl of a single site.

    States move `planning -> seeding -> draining -> completed`, or to `failed`
    when planning rejects the request or the crawl machinery itself breaks.
    Individual page failures never fail the crawl; they are recorded on the
    page and counted in the result.
    """

    def __init__(
        self,
        config: CrawlerConfig | None = None,
        *,
        fetcher: Fetcher | None = None,
        html_parser: HTMLParser | None = None,
        policy: CrawlPolicy | None = None,
        budget_calculator: BudgetCalculator | None = None,
        strategy_selector: StrategySelector | None = None,
        sitemap_discovery: SitemapDiscovery | None = None,
        validator: CrawlValidator | None = None,
        processor: ResultProcessor | None = None,
        stages: Sequence[PageStage] = (),
    ) -> None:
        self.config = config or CrawlerConfig()
        self.fetcher = fetcher
        self.html_parser = html_parser or HTMLParser()
        self.policy = policy or CrawlPolicy()
        self.budget_calculator = budget_calculator or BudgetCalculator()
        self.strategy_selector = strategy_selector or StrategySelector()
        self.sitemap_discovery = sitemap_discovery or SitemapDiscovery(
            self.policy,
            max_recursion=self.config.sitemap_max_recursion,
        )
        self.validator = validator
        self.processor = processor or ResultProcessor()
        self.stages = tuple(stages)

        self._state_lock = threading.Lock()
        self._state = CrawlState.PLANNING

    @property
    def state(self) -> CrawlState:
        with self._state_lock:
            return self._state

    def plan(self, settings: CrawlSettings) -> tuple[CrawlBudget, CrawlStrategy]:
        """Budget and strategy for `settings`; no network access."""

        clamped = settings.clamped()
        return self.budget_calculator.plan(settings), self.strategy_selector.select(clamped)

    def run(
        self,
        seed_url: str,
        settings: CrawlSettings,
        robots_checker: RobotsChecker | None = None,
        cancel_event: threading.Event | None = None,
    ) -> CrawlReport:
        """Crawl from `seed_url` and return the processed report.

        Planning errors (`PlanningError` subclasses) propagate after the
        state is set to `failed`; nothing is fetched in that case.
        """

        stats = StatsCollector()
        owns_fetcher = self.fetcher is None
        fetcher = self.fetcher or Fetcher(self.config)

        try:
            self._set_state(CrawlState.PLANNING, stats)
            if robots_checker is None and settings.respect_robots_txt:
                robots_checker = RobotsTxtChecker(
                    user_agent=self.config.validation_user_agent,
                    timeout_seconds=self.config.head_timeout_seconds,
                )

            validator = self.validator or CrawlValidator(self.config, fetcher=fetcher)
            try:
                validated_seed = validator.validate_all(seed_url, settings, robots_checker)
            except CrawlError as exc:
                logger.warning("Crawl request rejected: %s", exc)
                self._set_state(CrawlState.FAILED, stats)
                raise

            clamped = settings.clamped()
            budget, strategy = self.plan(settings)
            if owns_fetcher:
                fetcher.retry_policy = strategy.retry_policy

            logger.info(
                "Planned crawl of %s: strategy=%s pages=%d depth=%d concurrency=%d risk=%s",
                validated_seed,
                strategy.type.value,
                budget.max_pages,
                budget.max_depth,
                strategy.max_concurrency,
                budget.risk_level.value,
            )

            run = self._new_run(
                validated_seed,
                clamped,
                stats=stats,
                robots_checker=robots_checker if clamped.respect_robots_txt else None,
                cancel_event=cancel_event or threading.Event(),
            )

            try:
                self._set_state(CrawlState.SEEDING, stats)
                discovery = self._seed(run, fetcher)

                self._set_state(CrawlState.DRAINING, stats)
                self._drain(
                    run,
                    fetcher,
                    concurrency=self.config.concurrency or strategy.max_concurrency,
                )
            except Exception as exc:
                logger.exception("Crawl of %s failed", validated_seed)
                self._set_state(CrawlState.FAILED, stats)
                raise CrawlError(
                    f"Crawl of {validated_seed} failed: {exc.__class__.__name__}: {exc}",
                    {"seed_url": validated_seed},
                ) from exc

            result = self.processor.process(run.collector.pages)
            self._set_state(CrawlState.COMPLETED, stats)
        finally:
            if owns_fetcher:
                fetcher.close()
            stats.finish()

        if run.stop_reason:
            logger.warning("Crawl of %s stopped early: %s", validated_seed, run.stop_reason)

        logger.info(
            "Crawl of %s completed: attempted=%d success=%d failed=%d skipped=%d items=%d",
            validated_seed,
            result.total_pages_attempted,
            result.successful_pages,
            result.failed_pages,
            result.skipped_pages,
            len(result.knowledge_items),
        )

        return CrawlReport(
            seed_url=validated_seed,
            state=CrawlState.COMPLETED,
            result=result,
            budget=budget,
            strategy=strategy,
            sitemap_used=run.sitemap_seeded,
            discovery=discovery,
            stats=stats.to_json(),
            error=run.stop_reason,
        )

    def _new_run(
        self,
        seed_url: str,
        settings: CrawlSettings,
        *,
        stats: StatsCollector,
        robots_checker: RobotsChecker | None,
        cancel_event: threading.Event,
    ) -> _CrawlRun:
        frontier = Frontier(
            max_pages=settings.max_pages,
            max_depth=settings.max_depth,
            max_queue_size=self.strategy_selector.queue_size(
                settings, self.config.available_memory_bytes
            ),
        )

        duplicates = None
        if self.config.dedup_enabled:
            duplicates = NearDuplicateIndex(
                SimHash(
                    hash_bits=self.config.simhash_bits,
                    duplicate_threshold=self.config.duplicate_threshold,
                )
            )

        deadline = None
        if self.config.crawl_timeout_seconds is not None:
            deadline = time.monotonic() + self.config.crawl_timeout_seconds

        return _CrawlRun(
            seed_url=seed_url,
            settings=settings,
            frontier=frontier,
            collector=CollectingStage(),
            stats=stats,
            robots=robots_checker,
            duplicates=duplicates,
            cancel_event=cancel_event,
            deadline=deadline,
        )

    def _seed(self, run: _CrawlRun, fetcher: Fetcher) -> DiscoveryMetrics | None:
        discovery: DiscoveryMetrics | None = None

        if self.config.use_sitemaps:
            found = self.sitemap_discovery.discover(
                site_root(run.seed_url),
                fetcher.fetch_text,
                prioritize_compressed=self.config.prioritize_compressed_sitemaps,
                max_attempts=self.config.max_sitemap_attempts,
            )
            discovery = found.metrics
            if found.found:
                seeds = found.urls[: run.settings.max_pages]
                results = run.frontier.seed(seeds, source=UrlSource.SITEMAP)
                run.stats.record_enqueue_many(results)
                run.sitemap_seeded = any(result.accepted for result in results)
                if run.sitemap_seeded:
                    logger.info(
                        "Seeded frontier with %d sitemap URLs from %s",
                        sum(1 for result in results if result.accepted),
                        found.sitemap_url,
                    )
                    return discovery

        results = run.frontier.seed([run.seed_url], source=UrlSource.MANUAL)
        run.stats.record_enqueue_many(results)
        logger.info("Seeded frontier with homepage %s", run.seed_url)
        return discovery

    def _drain(self, run: _CrawlRun, fetcher: Fetcher, *, concurrency: int) -> None:
        workers = [
            threading.Thread(
                target=self._frontier_worker,
                args=(run, fetcher),
                name=f"crawler-worker-{idx}",
                daemon=True,
            )
            for idx in range(max(1, concurrency))
        ]

        for worker in workers:
            worker.start()

        while not run.frontier.wait_until_idle(timeout=IDLE_POLL_SECONDS):
            if run.should_stop():
                break

        run.frontier.close()

        join_deadline = time.monotonic() + WORKER_JOIN_TIMEOUT_SECONDS
        for worker in workers:
            worker.join(timeout=max(0.0, join_deadline - time.monotonic()))

        run.stats.record_frontier_snapshot(run.frontier.snapshot())

    def _frontier_worker(self, run: _CrawlRun, fetcher: Fetcher) -> None:
        while True:
            item = run.frontier.pop(timeout=POP_TIMEOUT_SECONDS)
            if item is None:
                if run.frontier.closed:
                    return
                continue

            try:
                if run.should_stop():
                    run.frontier.release(item)
                    continue
                self._crawl_item(run, fetcher, item)
            except Exception as exc:
                logger.exception("Unexpected error while crawling %s", item.url)
                self._emit(
                    run,
                    CrawledPageData.failed(
                        url=item.url,
                        depth=item.depth,
                        message=f"{exc.__class__.__name__}: {exc}",
                    ),
                    None,
                )
            finally:
                run.frontier.task_done()

    def _crawl_item(self, run: _CrawlRun, fetcher: Fetcher, item: FrontierItem) -> None:
        fetch_result = fetcher.fetch(
            item.url,
            user_agent=self.config.user_agent,
            timeout=self.config.timeout_seconds,
            cancel_event=run.abort,
        )
        if fetch_result.cancelled:
            run.frontier.release(item)
            return
        run.stats.record_fetch(fetch_result)

        try:
            parsed = self._parse(fetch_result, item)
            run.stats.record_parse(parsed)
            # Thin pages stay successful; the result processor filters them.
            if parsed.error:
                raise ParseFailure(parsed.error, {"url": item.url, **parsed.metadata})
        except (FetchFailure, ParseFailure) as exc:
            logger.warning("Page %s failed: %s", item.url, exc.message)
            self._emit(
                run,
                CrawledPageData.failed(
                    url=item.url,
                    depth=item.depth,
                    message=exc.message,
                    status_code=fetch_result.status_code,
                    response_time=fetch_result.elapsed_ms,
                ),
                None,
            )
            return

        if run.duplicates is not None:
            match = run.duplicates.check_and_add(item.url, parsed.text, parsed.title)
            if match is not None:
                # Duplicates do not use up the page budget.
                run.frontier.release(item)
                run.stats.record_duplicate(exact=match.exact)
                logger.debug(
                    "Skipping %s: duplicate of %s (similarity %.2f)",
                    item.url,
                    match.original_url,
                    match.result.similarity,
                )
                self._emit(
                    run,
                    CrawledPageData.skipped(
                        url=item.url,
                        depth=item.depth,
                        title=parsed.title,
                        reason=(
                            f"Duplicate of {match.original_url} "
                            f"(similarity {match.result.similarity:.2f})"
                        ),
                    ),
                    parsed,
                )
                return

        page = CrawledPageData(
            url=item.url,
            title=parsed.title,
            content=parsed.text,
            depth=item.depth,
            response_time=fetch_result.elapsed_ms,
            status_code=fetch_result.status_code,
        )
        logger.debug("Crawled %s (depth %d, %d chars)", item.url, item.depth, len(page.content))
        self._emit(run, page, parsed)
        self._expand_links(run, item, parsed)

    def _parse(self, fetch_result: FetchResult, item: FrontierItem) -> ParseResult:
        if not fetch_result.ok:
            raise FetchFailure(
                fetch_result.failure_message(),
                {"url": item.url, "status_code": fetch_result.status_code},
            )
        if not fetch_result.is_html:
            raise FetchFailure(
                f"Unsupported content type: {fetch_result.content_type}",
                {"url": item.url, "content_type": fetch_result.content_type},
            )

        return self.html_parser.parse(
            url=item.url,
            html=fetch_result.body or b"",
            final_url=fetch_result.final_url,
        )

    def _expand_links(self, run: _CrawlRun, item: FrontierItem, parsed: ParseResult) -> None:
        if run.sitemap_seeded or not parsed.out_links:
            return

        next_depth = item.depth + 1
        if next_depth >= run.settings.max_depth:
            return

        for link in parsed.out_links:
            if run.frontier.budget_exhausted:
                run.stats.increment("links_skipped_budget")
                return

            evaluation = self.policy.evaluate(link, run.seed_url, next_depth, run.settings)
            if not evaluation.should_crawl:
                run.stats.increment("links_rejected_policy")
                continue

            if not self.policy.is_valuable_lead_gen_content(link):
                run.stats.increment("links_rejected_lead_gen")
                continue

            if run.robots is not None and not run.robots.is_allowed(
                link, self.config.validation_user_agent
            ):
                run.stats.increment("links_blocked_robots")
                continue

            run.stats.record_enqueue(
                run.frontier.push(
                    link,
                    depth=next_depth,
                    source=UrlSource.DISCOVERED,
                    referrer=item.url,
                )
            )

    def _emit(self, run: _CrawlRun, page: CrawledPageData, document: ParseResult | None) -> None:
        run.stats.record_page(page)
        run.collector.handle(page, document)
        for stage in self.stages:
            stage.handle(page, document)

    def _set_state(self, state: CrawlState, stats: StatsCollector) -> None:
        with self._state_lock:
            self._state = state
        stats.record_state(state)
        logger.info("Crawl state -> %s", state.value)


def crawl(
    seed_url: str,
    settings: CrawlSettings,
    config: CrawlerConfig | None = None,
    *,
    robots_checker: RobotsChecker | None = None,
) -> CrawlResult:
    """Convenience wrapper returning only the `CrawlResult`."""

    return CrawlOrchestrator(config).run(seed_url, settings, robots_checker).result


__all__ = [
    "CrawlOrchestrator",
    "crawl",
    "site_root",
]
