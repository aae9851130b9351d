"""Content deduplication: exact content hashes and SimHash near-duplicates."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Iterable

from .similarity import Fingerprint, SimHash, normalize_text
from .types import CrawledPageData, SimilarityResult
from .url import canonical_of, normalize_url


# Volatile fragments that differ between otherwise identical renders.
_VOLATILE_PATTERNS = (
    re.compile(r"<!--.*?-->", re.DOTALL),
    re.compile(r"<script\b.*?</script>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<style\b.*?</style>", re.DOTALL | re.IGNORECASE),
    re.compile(r"\b\d{4}-\d{2}-\d{2}(?:[T ]\d{2}:\d{2}(?::\d{2})?(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?)?\b"),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{2,4}\b"),
    re.compile(r"\b\d{1,2}:\d{2}(?::\d{2})?\s*(?:am|pm)?\b", re.IGNORECASE),
    re.compile(r"\b(?:id|session|token|nonce)[=:]\s*[\w-]+", re.IGNORECASE),
)


def clean_content(content: str) -> str:
    text = content or ""
    for pattern in _VOLATILE_PATTERNS:
        text = pattern.sub(" ", text)
    return normalize_text(text)


def content_hash(content: str) -> str:
    """sha256 of the content with markup and volatile fragments removed."""

    return sha256(clean_content(content).encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class DuplicateMatch:
    """An earlier page that a new page duplicates."""

    original_url: str
    result: SimilarityResult
    exact: bool


class NearDuplicateIndex:
    """Thread-safe registry of accepted pages for duplicate checks.

    `check_and_add` is atomic: two workers holding the same content cannot both
    be accepted.
    """

    def __init__(self, simhash: SimHash | None = None) -> None:
        self.simhash = simhash or SimHash()
        self._lock = threading.Lock()
        self._by_hash: dict[str, str] = {}
        self._fingerprints: list[tuple[str, Fingerprint]] = []

    def check_and_add(self, url: str, content: str, title: str | None = None) -> DuplicateMatch | None:
        digest = content_hash(content)
        fingerprint = self.simhash.fingerprint(content, title)

        with self._lock:
            original = self._by_hash.get(digest)
            if original is not None:
                return DuplicateMatch(
                    original_url=original,
                    result=SimilarityResult(similarity=1.0, hamming_distance=0, is_duplicate=True),
                    exact=True,
                )

            for accepted_url, accepted in self._fingerprints:
                result = self.simhash.compare(fingerprint, accepted)
                if result.is_duplicate:
                    return DuplicateMatch(original_url=accepted_url, result=result, exact=False)

            self._by_hash[digest] = url
            self._fingerprints.append((url, fingerprint))
            return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._fingerprints)


@dataclass(slots=True)
class DuplicateGroup:
    """Pages judged to be the same document, with the URL to keep."""

    canonical_url: str
    urls: list[str] = field(default_factory=list)


@dataclass(slots=True)
class DeduplicationResult:
    unique_pages: list[CrawledPageData]
    groups: list[DuplicateGroup]

    @property
    def removed_count(self) -> int:
        return sum(len(group.urls) - 1 for group in self.groups)


def deduplicate_pages(
    pages: Iterable[CrawledPageData],
    simhash: SimHash | None = None,
) -> DeduplicationResult:
    """Collapse pages that share a normalized URL or near-identical content.

    Each group keeps the page whose URL is the canonical spelling among the
    group's URLs; groups of one are not reported.
    """

    simhash = simhash or SimHash()
    members: list[list[CrawledPageData]] = []
    fingerprints: list[Fingerprint] = []
    by_url: dict[str, int] = {}
    by_hash: dict[str, int] = {}

    for page in pages:
        url_key = normalize_url(page.url)
        digest = content_hash(page.content)
        fingerprint = simhash.fingerprint(page.content, page.title)

        index = by_url.get(url_key)
        if index is None:
            index = by_hash.get(digest)
        if index is None:
            for position, existing in enumerate(fingerprints):
                if simhash.compare(fingerprint, existing).is_duplicate:
                    index = position
                    break

        if index is None:
            index = len(members)
            members.append([])
            fingerprints.append(fingerprint)

        members[index].append(page)
        by_url.setdefault(url_key, index)
        by_hash.setdefault(digest, index)

    unique: list[CrawledPageData] = []
    groups: list[DuplicateGroup] = []
    for group_pages in members:
        urls = [page.url for page in group_pages]
        canonical = canonical_of(urls)
        keeper = next(page for page in group_pages if page.url == canonical)
        unique.append(keeper)
        if len(group_pages) > 1:
            groups.append(DuplicateGroup(canonical_url=canonical, urls=urls))

    return DeduplicationResult(unique_pages=unique, groups=groups)


__all__ = [
    "DeduplicationResult",
    "DuplicateGroup",
    "DuplicateMatch",
    "NearDuplicateIndex",
    "clean_content",
    "content_hash",
    "deduplicate_pages",
]
