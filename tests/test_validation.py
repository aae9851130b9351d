import pytest
import requests

from sitecrawler import CrawlerConfig, CrawlSettings, CrawlValidator
from sitecrawler.errors import (
    InvalidUrlRequest,
    PlanningError,
    RobotsDisallowed,
    SettingsOutOfRange,
    UnreachableTarget,
)

from conftest import FakeFetcher, FakeResponse, FakeRobotsChecker, html_page


SEED = "https://example.com"


def make_validator(fetcher=None, **config):
    return CrawlValidator(CrawlerConfig(**config), fetcher=fetcher or FakeFetcher())


@pytest.mark.parametrize("url", ["", "   ", "example.com", "https://", "http://host:notaport/"])
def test_invalid_url_format(url):
    with pytest.raises(InvalidUrlRequest) as excinfo:
        CrawlValidator.validate_url_format(url)
    assert excinfo.value.message.startswith("Invalid URL format")


def test_unsupported_protocol_message():
    with pytest.raises(InvalidUrlRequest) as excinfo:
        CrawlValidator.validate_url_format("ftp://example.com/file")
    assert excinfo.value.message == "Only HTTP and HTTPS protocols are supported"
    assert excinfo.value.context["protocol"] == "ftp"


def test_url_format_strips_whitespace():
    assert CrawlValidator.validate_url_format("  https://example.com/  ") == "https://example.com/"


@pytest.mark.parametrize(
    "settings, field_name, limit",
    [
        (CrawlSettings(max_pages=0, max_depth=2), "max_pages", 1),
        (CrawlSettings(max_pages=101, max_depth=2), "max_pages", 100),
        (CrawlSettings(max_pages=10, max_depth=0), "max_depth", 1),
        (CrawlSettings(max_pages=10, max_depth=6), "max_depth", 5),
    ],
)
def test_settings_out_of_range_context(settings, field_name, limit):
    with pytest.raises(SettingsOutOfRange) as excinfo:
        CrawlValidator.validate_settings(settings)
    context = excinfo.value.context
    assert context["field"] == field_name
    assert context["limit"] == limit
    assert context[field_name] == getattr(settings, field_name)
    assert context["validation_rule"]


def test_accessibility_passes_for_reachable_site():
    fetcher = FakeFetcher(head_status=301)
    make_validator(fetcher).validate_accessibility(SEED)
    assert fetcher.head_calls == [SEED]
    assert fetcher.fetched == []


def test_accessibility_wraps_network_errors():
    fetcher = FakeFetcher(head_error=requests.ConnectionError("refused"))
    with pytest.raises(UnreachableTarget) as excinfo:
        make_validator(fetcher).validate_accessibility(SEED)
    assert "ConnectionError" in excinfo.value.context["reason"]


def test_accessibility_rejects_error_status():
    with pytest.raises(UnreachableTarget) as excinfo:
        make_validator(FakeFetcher(head_status=503)).validate_accessibility(SEED)
    assert excinfo.value.context["status_code"] == 503


def test_accessibility_falls_back_to_get_when_head_not_allowed():
    fetcher = FakeFetcher({SEED: html_page("Home", "Welcome")}, head_status=405)
    make_validator(fetcher).validate_accessibility(SEED)
    assert fetcher.fetched == [SEED]

    failing = FakeFetcher({SEED: FakeResponse(500, b"boom")}, head_status=405)
    with pytest.raises(UnreachableTarget):
        make_validator(failing).validate_accessibility(SEED)


def test_robots_unloadable_and_blocked():
    validator = make_validator()

    with pytest.raises(RobotsDisallowed) as excinfo:
        validator.validate_robots(SEED, FakeRobotsChecker(loadable=False))
    assert "could not be loaded" in excinfo.value.message

    with pytest.raises(RobotsDisallowed) as excinfo:
        validator.validate_robots(SEED, FakeRobotsChecker(allowed=False))
    assert "blocked by robots.txt" in excinfo.value.message


def test_robots_checker_exceptions_become_planning_errors():
    class ExplodingChecker:
        def can_load(self, url):
            raise RuntimeError("parser crashed")

        def is_allowed(self, url, user_agent):
            return True

    with pytest.raises(RobotsDisallowed) as excinfo:
        make_validator().validate_robots(SEED, ExplodingChecker())
    assert "RuntimeError" in excinfo.value.context["reason"]


def test_validate_all_checks_format_before_settings():
    fetcher = FakeFetcher()
    validator = make_validator(fetcher)
    with pytest.raises(InvalidUrlRequest):
        validator.validate_all("nope", CrawlSettings(max_pages=0))
    assert fetcher.head_calls == []


def test_validate_all_checks_settings_before_network():
    fetcher = FakeFetcher()
    with pytest.raises(SettingsOutOfRange):
        make_validator(fetcher).validate_all(SEED, CrawlSettings(max_pages=500))
    assert fetcher.head_calls == []


def test_validate_all_checks_reachability_before_robots():
    robots = FakeRobotsChecker(allowed=False)
    with pytest.raises(UnreachableTarget):
        make_validator(FakeFetcher(head_status=404)).validate_all(SEED, CrawlSettings(), robots)
    assert robots.calls == []


def test_validate_all_skips_robots_when_not_respected():
    robots = FakeRobotsChecker(allowed=False)
    settings = CrawlSettings(respect_robots_txt=False)
    assert make_validator().validate_all(SEED, settings, robots) == SEED


def test_validate_all_can_skip_accessibility():
    fetcher = FakeFetcher(head_status=500)
    validator = make_validator(fetcher, check_accessibility=False)
    assert validator.validate_all(SEED, CrawlSettings(), FakeRobotsChecker()) == SEED
    assert fetcher.head_calls == []


def test_planning_errors_serialize():
    error = SettingsOutOfRange("max_pages cannot exceed 100", {"max_pages": 101, "limit": 100})
    assert isinstance(error, PlanningError)
    payload = error.to_json()
    assert payload["code"] == "settings_out_of_range"
    assert payload["error_type"] == "SettingsOutOfRange"
    assert payload["context"] == {"max_pages": 101, "limit": 100}
