import pytest

from sitecrawler import CrawledPageData, ResultProcessor, knowledge_item_id
from sitecrawler.types import PageStatus


def make_page(url="https://example.com/about", *, title="About Our Company", content=None, depth=1,
              response_time=120, status=PageStatus.SUCCESS):
    return CrawledPageData(
        url=url,
        title=title,
        content="We help companies grow with practical consulting. " * 4 if content is None else content,
        depth=depth,
        status=status,
        response_time=response_time,
    )


@pytest.fixture
def processor():
    return ResultProcessor()


def test_quality_filter(processor):
    assert processor.is_quality_content(make_page())
    assert not processor.is_quality_content(make_page(content="Too short."))
    assert not processor.is_quality_content(make_page(title="  "))
    assert not processor.is_quality_content(make_page(content=" " * 120 + "x"))
    assert not processor.is_quality_content(make_page(content="<div><span></span></div>" * 10))
    assert not processor.is_quality_content(make_page(status=PageStatus.FAILED))


def test_knowledge_item_id_ignores_query_and_fragment():
    plain = knowledge_item_id("https://example.com/about")
    assert plain == knowledge_item_id("https://example.com/about?ref=nav#team")
    assert plain != knowledge_item_id("https://example.com/services")
    assert plain.startswith("website_")
    assert len(plain) == len("website_") + 16


def test_knowledge_item_title_includes_path(processor):
    item = processor.knowledge_item(make_page())
    assert item.title == "About Our Company | /about"
    assert item.category == "general"
    assert item.tags == ("website", "crawled", "depth-1")
    assert item.source == "https://example.com/about"

    home = processor.knowledge_item(make_page(url="https://example.com", title="Home", depth=0))
    assert home.title == "Home"


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({"content": "x" * 600, "depth": 1, "response_time": 120, "title": "About Our Company"}, 0.7),
        ({"content": "x" * 2500, "depth": 0, "response_time": 50, "title": "About Our Company"}, 0.95),
        ({"content": "x" * 200, "depth": 5, "response_time": None, "title": "Short"}, 0.25),
        ({"content": "x" * 200, "depth": 10, "response_time": 2000, "title": "Short"}, 0.1),
    ],
)
def test_relevance_score(kwargs, expected):
    assert ResultProcessor.relevance_score(make_page(**kwargs)) == pytest.approx(expected)


def test_relevance_prefers_shallow_pages():
    shallow = ResultProcessor.relevance_score(make_page(depth=0))
    deep = ResultProcessor.relevance_score(make_page(depth=2))
    assert shallow > deep


def test_calculate_metrics(processor):
    pages = [
        make_page("https://example.com/a", content="a" * 200, response_time=100),
        make_page("https://example.com/b", content="b" * 200, response_time=300),
        CrawledPageData.failed(url="https://example.com/c", depth=1, message="HTTP status 500"),
        CrawledPageData.skipped(url="https://example.com/d", depth=1, title="Dup", reason="duplicate"),
    ]

    metrics = processor.calculate_metrics(pages)

    assert metrics.total_pages == 4
    assert metrics.successful_pages == 2
    assert metrics.failed_pages == 1
    assert metrics.skipped_pages == 1
    assert metrics.quality_pages == 2
    assert metrics.average_response_time == 200.0
    assert metrics.success_rate == 50.0
    assert metrics.quality_score == 64.0


def test_calculate_metrics_empty(processor):
    metrics = processor.calculate_metrics([])
    assert metrics.total_pages == 0
    assert metrics.success_rate == 0.0
    assert metrics.quality_score == 0.0


def test_process_builds_items_from_quality_pages_only(processor):
    pages = [
        make_page("https://example.com/about"),
        make_page("https://example.com/thin", content="Thin."),
        CrawledPageData.failed(url="https://example.com/broken", depth=1, message="HTTP status 404"),
    ]

    result = processor.process(pages)

    assert [page.url for page in result.crawled_pages] == ["https://example.com/about"]
    assert [item.source for item in result.knowledge_items] == ["https://example.com/about"]
    assert result.total_pages_attempted == 3
    assert result.successful_pages == 2
    assert result.failed_pages == 1
    assert result.skipped_pages == 0
