"""HTML parsing: title, main content and link discovery.

Main content comes from the first matching content selector after page
chrome is removed. When that text is too thin, Trafilatura and Readability
extractions are merged as a fallback.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
from typing import Iterable

from bs4 import BeautifulSoup
from readability import Document as ReadabilityDocument
import trafilatura

from ..errors import ParseFailure
from ..types import ParseResult
from ..url import extract_links_from_html

logger = logging.getLogger(__name__)


REMOVE_SELECTORS = (
    "script",
    "style",
    "nav",
    "header",
    "footer",
    "aside",
    ".ads",
    ".advertisement",
    ".sidebar",
    ".navigation",
    ".menu",
    ".popup",
    ".modal",
    ".cookie-notice",
)

CONTENT_SELECTORS = (
    "main",
    "article",
    '[role="main"]',
    ".content",
    ".main-content",
    "#content",
    "#main",
)

UNTITLED = "Untitled"


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


class HtmlDocument:
    """Parsed HTML page with selector-based querying and element removal."""

    def __init__(self, html: str | bytes) -> None:
        self.soup = BeautifulSoup(html, "lxml")

    def remove_elements(self, selectors: Iterable[str]) -> int:
        removed = 0
        for selector in selectors:
            for element in self.soup.select(selector):
                element.decompose()
                removed += 1
        return removed

    def find_text(self, selector: str) -> str | None:
        element = self.soup.select_one(selector)
        if element is None:
            return None
        text = _collapse(element.get_text(" ", strip=True))
        return text or None

    def body_text(self) -> str:
        root = self.soup.body or self.soup
        return _collapse(root.get_text(" ", strip=True))

    def all_links(self) -> list[str]:
        return [
            str(element.get("href"))
            for element in self.soup.find_all(["a", "area"])
            if element.get("href")
        ]

    def title(self) -> str:
        if self.soup.title and self.soup.title.get_text(strip=True):
            return _collapse(self.soup.title.get_text(" ", strip=True))
        heading = self.soup.find("h1")
        if heading:
            text = _collapse(heading.get_text(" ", strip=True))
            if text:
                return text
        return UNTITLED


@dataclass(slots=True)
class HTMLParserConfig:
    """Config for HTML extraction."""

    parser_name: str = "html_parser_selectors_trafilatura_readability"
    remove_selectors: tuple[str, ...] = REMOVE_SELECTORS
    content_selectors: tuple[str, ...] = CONTENT_SELECTORS
    include_nofollow_links: bool = True
    use_trafilatura: bool = True
    use_readability: bool = True
    # Thin pages parse fine and are filtered later by quality checks.
    # Set to raise `ParseFailure` for them instead.
    reject_thin_content: bool = False
    min_content_chars: int = 100
    min_meaningful_words: int = 10
    meaningful_word_length: int = 3
    merge_separator: str = "\n\n"
    extra_metadata: dict[str, str] = field(default_factory=dict)


class HTMLParser:
    """Turn fetched HTML into a `ParseResult`."""

    def __init__(self, config: HTMLParserConfig | None = None) -> None:
        self.config = config or HTMLParserConfig()

    def parse(
        self,
        *,
        url: str,
        html: str | bytes,
        final_url: str | None = None,
    ) -> ParseResult:
        base_url = final_url or url
        html_text = self._coerce_html_text(html)

        out_links = extract_links_from_html(
            html_text,
            base_url=base_url,
            include_nofollow=self.config.include_nofollow_links,
        )

        document = HtmlDocument(html_text)
        title = document.title()

        metadata = {
            "parser": self.config.parser_name,
            "raw_chars": len(html_text),
            "links_found": len(out_links),
            **self.config.extra_metadata,
        }

        try:
            text, extractor = self.extract_main_content(document, html_text)
        except ParseFailure as exc:
            return ParseResult(
                url=base_url,
                title=title,
                text="",
                out_links=out_links,
                metadata={**metadata, **{k: str(v) for k, v in exc.context.items()}},
                error=f"{exc.__class__.__name__}: {exc.message}",
            )

        metadata["extractor"] = extractor
        metadata["clean_chars"] = len(text)
        quality_error = self._quality_error(text)
        if quality_error:
            metadata["quality_warning"] = quality_error
        return ParseResult(
            url=base_url,
            title=title,
            text=text,
            out_links=out_links,
            metadata=metadata,
        )

    def extract_main_content(self, document: HtmlDocument, html_text: str = "") -> tuple[str, str]:
        """Return `(text, extractor_name)`.

        Text that fails the length or word checks is returned as is, unless
        `reject_thin_content` is set, in which case `ParseFailure` is raised.
        `document` is modified: chrome elements are removed from it.
        """

        document.remove_elements(self.config.remove_selectors)

        text = ""
        extractor = "body"
        for selector in self.config.content_selectors:
            candidate = document.find_text(selector)
            if candidate:
                text, extractor = candidate, selector
                break
        if not text:
            text = document.body_text()

        if self._quality_error(text) is None:
            return text, extractor

        if html_text:
            fallback = self._extract_fallback(html_text)
            if fallback and self._quality_error(fallback) is None:
                return fallback, "trafilatura+readability"

        if not self.config.reject_thin_content:
            return text, extractor

        raise ParseFailure(
            self._quality_error(text) or "No extractable text from HTML",
            {"chars": len(text), "words": self.meaningful_word_count(text)},
        )

    def meaningful_word_count(self, text: str) -> int:
        minimum = max(1, self.config.meaningful_word_length)
        return len(re.findall(rf"\b\w{{{minimum},}}\b", text))

    def _quality_error(self, text: str) -> str | None:
        if len(text) < self.config.min_content_chars:
            return (
                f"Content too short: {len(text)} chars < "
                f"min_content_chars={self.config.min_content_chars}"
            )
        words = self.meaningful_word_count(text)
        if words < self.config.min_meaningful_words:
            return (
                f"Content lacks meaningful words: {words} < "
                f"min_meaningful_words={self.config.min_meaningful_words}"
            )
        return None

    def _extract_fallback(self, html_text: str) -> str:
        trafilatura_text, trafilatura_error = self._extract_with_trafilatura(html_text)
        readability_text, readability_error = self._extract_with_readability(html_text)
        for message in (trafilatura_error, readability_error):
            if message:
                logger.debug(message)
        return self._merge_texts(trafilatura_text, readability_text)

    def _extract_with_trafilatura(self, html_text: str) -> tuple[str, str | None]:
        if not self.config.use_trafilatura:
            return "", None

        try:
            extracted = trafilatura.extract(
                html_text,
                output_format="txt",
                include_comments=False,
                include_tables=True,
                include_images=False,
                deduplicate=True,
            )
            return (extracted or "").strip(), None
        except Exception as exc:
            return "", f"Trafilatura extraction failed: {exc.__class__.__name__}: {exc}"

    def _extract_with_readability(self, html_text: str) -> tuple[str, str | None]:
        if not self.config.use_readability:
            return "", None

        try:
            summary_html = ReadabilityDocument(html_text).summary()
            if isinstance(summary_html, bytes):
                summary_html = summary_html.decode("utf-8", errors="replace")
            if not summary_html:
                return "", None
            soup = BeautifulSoup(summary_html, "lxml")
            return soup.get_text("\n", strip=True).strip(), None
        except Exception as exc:
            return "", f"Readability extraction failed: {exc.__class__.__name__}: {exc}"

    def _merge_texts(self, *texts: str) -> str:
        ordered: list[str] = []
        seen: set[str] = set()

        for text in texts:
            for paragraph in re.split(r"\n\s*\n+|\n", text or ""):
                compact = _collapse(paragraph)
                key = re.sub(r"[^a-z0-9]+", " ", compact.lower()).strip()
                if not key or key in seen:
                    continue
                seen.add(key)
                ordered.append(compact)

        return _collapse(" ".join(ordered))

    @staticmethod
    def _coerce_html_text(html: str | bytes) -> str:
        if isinstance(html, bytes):
            return html.decode("utf-8", errors="replace")
        return html


__all__ = [
    "CONTENT_SELECTORS",
    "HTMLParser",
    "HTMLParserConfig",
    "HtmlDocument",
    "REMOVE_SELECTORS",
    "UNTITLED",
]
