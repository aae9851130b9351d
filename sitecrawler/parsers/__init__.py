"""Parser package exports."""

from .html_parser import CONTENT_SELECTORS, REMOVE_SELECTORS, HTMLParser, HTMLParserConfig, HtmlDocument

__all__ = [
    "CONTENT_SELECTORS",
    "HTMLParser",
    "HTMLParserConfig",
    "HtmlDocument",
    "REMOVE_SELECTORS",
]
