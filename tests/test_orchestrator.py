import threading
import time

import pytest

from sitecrawler import CollectingStage, CrawlerConfig, CrawlOrchestrator, CrawlSettings, crawl
from sitecrawler.errors import InvalidUrlRequest, RobotsDisallowed, UnreachableTarget
from sitecrawler.orchestrator import site_root
from sitecrawler.types import CrawlState, PageStatus

from conftest import FakeFetcher, FakeResponse, FakeRobotsChecker, html_page, paragraph


SEED = "https://example.com"


def small_site(extra_home_links=(), **extra_pages):
    pages = {
        SEED: html_page(
            "Example Co Home",
            paragraph("home"),
            links=["/about", "/services", *extra_home_links],
        ),
        f"{SEED}/about": html_page("About Example Co", paragraph("about"), links=["/"]),
        f"{SEED}/services": html_page("Our Services", paragraph("services"), links=["/about"]),
    }
    for path, page in extra_pages.items():
        pages[f"{SEED}/{path}"] = page
    return pages


def make_orchestrator(fetcher, **config):
    options = {"retry_base_delay_seconds": 0.0, "concurrency": 2}
    options.update(config)
    return CrawlOrchestrator(CrawlerConfig(**options), fetcher=fetcher)


def successful_urls(report):
    return sorted(page.url for page in report.result.crawled_pages)


def test_small_site_end_to_end(settings, robots):
    fetcher = FakeFetcher(small_site())
    orchestrator = make_orchestrator(fetcher)

    report = orchestrator.run(SEED, settings, robots)
    result = report.result

    assert orchestrator.state == CrawlState.COMPLETED
    assert report.state == CrawlState.COMPLETED
    assert result.successful_pages == 3
    assert result.failed_pages == 0
    assert result.skipped_pages == 0
    assert result.total_pages_attempted == 3
    assert len(result.knowledge_items) == 3
    assert successful_urls(report) == [SEED, f"{SEED}/about", f"{SEED}/services"]

    items = {item.source: item for item in result.knowledge_items}
    assert items[SEED].relevance_score >= items[f"{SEED}/about"].relevance_score
    assert items[f"{SEED}/about"].title == "About Example Co | /about"
    assert items[f"{SEED}/about"].tags == ("website", "crawled", "depth-1")

    assert fetcher.head_calls == [SEED]
    assert len(fetcher.fetched) == 3
    assert report.sitemap_used is False
    assert report.discovery.total_attempts == 4
    assert report.budget.max_pages == 15
    assert report.strategy.type.value == "hybrid"
    assert [entry["state"] for entry in report.stats["states"]] == [
        "planning",
        "seeding",
        "draining",
        "completed",
    ]


def test_no_page_is_fetched_twice(settings, robots):
    fetcher = FakeFetcher(small_site())
    make_orchestrator(fetcher).run(SEED, settings, robots)
    assert len(fetcher.fetched) == len(set(fetcher.fetched))


def test_planning_failure_fetches_nothing(settings, robots):
    fetcher = FakeFetcher(small_site(), head_status=404)
    orchestrator = make_orchestrator(fetcher)

    with pytest.raises(UnreachableTarget):
        orchestrator.run(SEED, settings, robots)

    assert orchestrator.state == CrawlState.FAILED
    assert fetcher.fetched == []
    assert fetcher.sitemap_calls == []


def test_invalid_seed_is_rejected(settings, robots):
    orchestrator = make_orchestrator(FakeFetcher())
    with pytest.raises(InvalidUrlRequest):
        orchestrator.run("ftp://example.com", settings, robots)
    assert orchestrator.state == CrawlState.FAILED


def test_robots_block_on_seed_fails_planning(settings):
    orchestrator = make_orchestrator(FakeFetcher(small_site()))
    with pytest.raises(RobotsDisallowed):
        orchestrator.run(SEED, settings, FakeRobotsChecker(allowed=False))


def test_sitemap_urls_seed_the_frontier(settings, robots):
    sitemap = (
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        f"<url><loc>{SEED}/about</loc></url>"
        f"<url><loc>{SEED}/services</loc></url>"
        f"<url><loc>{SEED}/careers</loc></url>"
        "</urlset>"
    )
    fetcher = FakeFetcher(small_site(), sitemaps={f"{SEED}/sitemap.xml": sitemap})

    report = make_orchestrator(fetcher).run(SEED, settings, robots)

    assert report.sitemap_used is True
    assert sorted(fetcher.fetched) == [f"{SEED}/about", f"{SEED}/services"]
    assert successful_urls(report) == [f"{SEED}/about", f"{SEED}/services"]
    assert all(page.depth == 0 for page in report.result.crawled_pages)
    assert report.discovery.successful_attempts == 1


def test_sitemaps_can_be_disabled(settings, robots):
    fetcher = FakeFetcher(small_site(), sitemaps={f"{SEED}/sitemap.xml": "<urlset/>"})
    report = make_orchestrator(fetcher, use_sitemaps=False).run(SEED, settings, robots)

    assert fetcher.sitemap_calls == []
    assert report.discovery is None
    assert report.result.successful_pages == 3


def test_failed_page_is_recorded_and_crawl_continues(settings, robots):
    fetcher = FakeFetcher(small_site(["/broken"], broken=FakeResponse(500, b"boom")))
    stage = CollectingStage()
    orchestrator = CrawlOrchestrator(
        CrawlerConfig(retry_base_delay_seconds=0.0, concurrency=2),
        fetcher=fetcher,
        stages=[stage],
    )

    report = orchestrator.run(SEED, settings, robots)

    assert report.result.successful_pages == 3
    assert report.result.failed_pages == 1
    failed = [page for page in stage.pages if page.status == PageStatus.FAILED]
    assert [page.url for page in failed] == [f"{SEED}/broken"]
    assert failed[0].status_code == 500
    assert failed[0].error_message == "HTTP status 500"


def test_non_html_response_is_a_failed_page(settings, robots):
    fetcher = FakeFetcher(
        small_site(["/brochure"], brochure=FakeResponse(200, b"%PDF-1.4", "application/pdf"))
    )
    stage = CollectingStage()
    orchestrator = CrawlOrchestrator(
        CrawlerConfig(retry_base_delay_seconds=0.0), fetcher=fetcher, stages=[stage]
    )

    orchestrator.run(SEED, settings, robots)

    failed = [page for page in stage.pages if page.status == PageStatus.FAILED]
    assert len(failed) == 1
    assert failed[0].error_message.startswith("Unsupported content type")


def test_thin_page_counts_as_success_but_yields_no_item(settings, robots):
    fetcher = FakeFetcher(small_site(["/contact"], contact=html_page("Contact", "Call us today.")))

    report = make_orchestrator(fetcher).run(SEED, settings, robots)
    result = report.result

    assert result.successful_pages == 4
    assert result.failed_pages == 0
    assert len(result.knowledge_items) == 3
    assert f"{SEED}/contact" not in successful_urls(report)


def test_duplicate_content_is_skipped_once(settings, robots):
    copy = html_page("Our Services", paragraph("services"))
    fetcher = FakeFetcher(small_site(["/solutions"], solutions=copy))

    report = make_orchestrator(fetcher).run(SEED, settings, robots)
    result = report.result

    assert result.skipped_pages == 1
    assert result.successful_pages == 3
    kept = {page.url for page in result.crawled_pages}
    assert len(kept & {f"{SEED}/services", f"{SEED}/solutions"}) == 1
    assert report.stats["duplicates"]["exact"] == 1


def test_dedup_can_be_disabled(settings, robots):
    copy = html_page("Our Services", paragraph("services"))
    fetcher = FakeFetcher(small_site(["/solutions"], solutions=copy))

    report = make_orchestrator(fetcher, dedup_enabled=False).run(SEED, settings, robots)

    assert report.result.skipped_pages == 0
    assert report.result.successful_pages == 4


def test_page_budget_is_never_exceeded(robots):
    extra = ["/pricing", "/contact", "/products"]
    pages = {path.strip("/"): html_page(path.strip("/").title(), paragraph(path.strip("/"))) for path in extra}
    fetcher = FakeFetcher(small_site(extra, **pages))

    report = make_orchestrator(fetcher).run(SEED, CrawlSettings(max_pages=2, max_depth=2), robots)

    assert len(fetcher.fetched) == 2
    assert report.result.total_pages_attempted == 2
    assert SEED in fetcher.fetched


def test_depth_limit_stops_link_expansion(robots):
    fetcher = FakeFetcher(small_site())
    report = make_orchestrator(fetcher).run(SEED, CrawlSettings(max_pages=15, max_depth=1), robots)

    assert fetcher.fetched == [SEED]
    assert report.result.successful_pages == 1


def test_robots_blocked_links_are_not_followed(settings):
    fetcher = FakeFetcher(small_site())
    robots = FakeRobotsChecker(blocked={f"{SEED}/services"})

    report = make_orchestrator(fetcher).run(SEED, settings, robots)

    assert f"{SEED}/services" not in fetcher.fetched
    assert report.stats["custom_counters"]["links_blocked_robots"] == 1


def test_links_ignored_when_robots_not_respected(robots):
    fetcher = FakeFetcher(small_site())
    blocking = FakeRobotsChecker(allowed=False)
    settings = CrawlSettings(max_pages=15, max_depth=2, respect_robots_txt=False)

    report = make_orchestrator(fetcher).run(SEED, settings, blocking)

    assert report.result.successful_pages == 3
    assert blocking.calls == []


def test_cancelled_crawl_fetches_nothing(settings, robots):
    fetcher = FakeFetcher(small_site())
    cancel = threading.Event()
    cancel.set()

    report = make_orchestrator(fetcher).run(SEED, settings, robots, cancel_event=cancel)

    assert fetcher.fetched == []
    assert report.error == "cancelled"
    assert report.state == CrawlState.COMPLETED
    assert report.result.total_pages_attempted == 0


class CancelAfterFirstPage:
    def __init__(self, cancel_event):
        self.cancel_event = cancel_event

    def handle(self, page, document):
        self.cancel_event.set()


def slow_site_fetcher():
    return FakeFetcher(
        small_site(["/pricing"], pricing=html_page("Pricing", paragraph("pricing"))),
        delays={f"{SEED}/about": 30.0, f"{SEED}/services": 30.0, f"{SEED}/pricing": 30.0},
    )


def test_crawl_timeout_keeps_pages_already_processed(settings, robots):
    fetcher = slow_site_fetcher()
    orchestrator = make_orchestrator(fetcher, crawl_timeout_seconds=0.5)

    started = time.monotonic()
    report = orchestrator.run(SEED, settings, robots)
    elapsed = time.monotonic() - started

    assert report.error == "crawl timeout"
    assert report.state == CrawlState.COMPLETED
    assert successful_urls(report) == [SEED]
    assert report.result.failed_pages == 0
    assert elapsed < 5.0


def test_cancel_during_draining_keeps_partial_result(settings, robots):
    fetcher = slow_site_fetcher()
    cancel = threading.Event()
    orchestrator = CrawlOrchestrator(
        CrawlerConfig(retry_base_delay_seconds=0.0, concurrency=2),
        fetcher=fetcher,
        stages=[CancelAfterFirstPage(cancel)],
    )

    started = time.monotonic()
    report = orchestrator.run(SEED, settings, robots, cancel_event=cancel)

    assert report.error == "cancelled"
    assert successful_urls(report) == [SEED]
    assert len(report.result.knowledge_items) == 1
    assert time.monotonic() - started < 5.0


def test_crawl_helper_returns_result(settings, robots, monkeypatch):
    fetcher = FakeFetcher(small_site())
    monkeypatch.setattr("sitecrawler.orchestrator.Fetcher", lambda config: fetcher)

    result = crawl(SEED, settings, CrawlerConfig(retry_base_delay_seconds=0.0), robots_checker=robots)

    assert result.successful_pages == 3
    assert fetcher.closed


def test_plan_is_offline():
    orchestrator = CrawlOrchestrator(fetcher=FakeFetcher())
    budget, strategy = orchestrator.plan(CrawlSettings(max_pages=500, max_depth=9))
    assert budget.max_pages == 100
    assert budget.max_depth == 5
    assert strategy.type.value == "breadth-first"


def test_site_root():
    assert site_root("https://Example.com:8080/a/b?c=d") == "https://example.com:8080"
