from sitecrawler import CrawledPageData
from sitecrawler.dedup import NearDuplicateIndex, clean_content, content_hash, deduplicate_pages

from conftest import paragraph


def page(url: str, content: str, title: str = "Page") -> CrawledPageData:
    return CrawledPageData(url=url, title=title, content=content, depth=0)


def test_content_hash_ignores_volatile_fragments():
    first = "Rendered 2024-01-05T10:00:00Z <!-- build 1 --> Welcome to our services."
    second = "Rendered 2025-06-30T23:59:59Z <!-- build 2 --> Welcome to our services."
    assert content_hash(first) == content_hash(second)
    assert "build" not in clean_content(first)


def test_index_accepts_first_and_flags_exact_copy():
    index = NearDuplicateIndex()
    body = paragraph("services")

    assert index.check_and_add("https://example.com/services", body) is None
    match = index.check_and_add("https://example.com/services?ref=nav", body.upper())

    assert match is not None
    assert match.exact
    assert match.original_url == "https://example.com/services"
    assert match.result.similarity == 1.0
    assert len(index) == 1


def test_index_flags_near_duplicate():
    index = NearDuplicateIndex()
    body = paragraph("pricing", words=300)

    index.check_and_add("https://example.com/pricing", body)
    match = index.check_and_add("https://example.com/plans", body + " today")

    assert match is not None
    assert not match.exact
    assert match.result.is_duplicate


def test_index_keeps_distinct_pages():
    index = NearDuplicateIndex()
    assert index.check_and_add("https://example.com/about", paragraph("about")) is None
    assert index.check_and_add("https://example.com/contact", paragraph("contact")) is None
    assert len(index) == 2


def test_deduplicate_pages_keeps_canonical_url():
    body = paragraph("services")
    pages = [
        page("http://example.com/services", body),
        page("https://example.com/services?ref=nav", body),
        page("https://example.com/services", body),
        page("https://example.com/about", paragraph("about")),
    ]

    result = deduplicate_pages(pages)

    assert [kept.url for kept in result.unique_pages] == [
        "https://example.com/services",
        "https://example.com/about",
    ]
    assert len(result.groups) == 1
    assert result.groups[0].canonical_url == "https://example.com/services"
    assert result.removed_count == 2


def test_deduplicate_pages_groups_equivalent_urls():
    pages = [
        page("https://www.example.com/about/", paragraph("about")),
        page("https://example.com/about", paragraph("about-v2")),
    ]

    result = deduplicate_pages(pages)

    assert len(result.unique_pages) == 1
    assert result.groups[0].urls == ["https://www.example.com/about/", "https://example.com/about"]
