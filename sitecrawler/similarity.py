"""SimHash fingerprints and near-duplicate verdicts for page content."""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from hashlib import blake2b

from .constants import DEFAULT_DUPLICATE_THRESHOLD, DEFAULT_SIMHASH_BITS
from .types import SimilarityResult


_TAG_RE = re.compile(r"<[^>]+>")
_NON_WORD_RE = re.compile(r"[^\w\s]+")
_SPACE_RE = re.compile(r"\s+")


def normalize_text(content: str) -> str:
    """Lowercase, drop markup and punctuation, collapse whitespace."""

    text = _TAG_RE.sub(" ", content or "")
    text = _NON_WORD_RE.sub(" ", text.lower())
    return _SPACE_RE.sub(" ", text).strip()


def tokenize(content: str) -> list[str]:
    normalized = normalize_text(content)
    return normalized.split(" ") if normalized else []


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """SimHash value of one document; `empty` marks a document with no tokens."""

    value: int
    bits: int
    empty: bool = False

    def hex(self) -> str:
        return f"{self.value:0{self.bits // 4}x}"


class SimHash:
    """Locality-sensitive fingerprints compared by Hamming distance.

    Each distinct token votes on every bit of the fingerprint with weight equal
    to its frequency; a bit is set when the weighted votes are positive.
    Similarity is `1 - distance / bits`.
    """

    def __init__(
        self,
        *,
        hash_bits: int = DEFAULT_SIMHASH_BITS,
        duplicate_threshold: float = DEFAULT_DUPLICATE_THRESHOLD,
        include_title: bool = False,
    ) -> None:
        if hash_bits <= 0 or hash_bits % 8 != 0 or hash_bits > 512:
            raise ValueError("hash_bits must be a positive multiple of 8, at most 512")
        if not 0.0 <= duplicate_threshold <= 1.0:
            raise ValueError("duplicate_threshold must be within [0, 1]")

        self.hash_bits = hash_bits
        self.duplicate_threshold = duplicate_threshold
        self.include_title = include_title

    def _token_hash(self, token: str) -> int:
        digest = blake2b(token.encode("utf-8"), digest_size=self.hash_bits // 8).digest()
        return int.from_bytes(digest, "big")

    def fingerprint(self, content: str, title: str | None = None) -> Fingerprint:
        tokens = tokenize(content)
        if self.include_title and title:
            tokens = tokenize(title) + tokens

        if not tokens:
            return Fingerprint(value=0, bits=self.hash_bits, empty=True)

        votes = [0] * self.hash_bits
        for token, weight in Counter(tokens).items():
            hashed = self._token_hash(token)
            for bit in range(self.hash_bits):
                if hashed >> bit & 1:
                    votes[bit] += weight
                else:
                    votes[bit] -= weight

        value = 0
        for bit, vote in enumerate(votes):
            if vote > 0:
                value |= 1 << bit
        return Fingerprint(value=value, bits=self.hash_bits)

    def hamming_distance(self, left: Fingerprint, right: Fingerprint) -> int:
        if left.bits != right.bits:
            raise ValueError("Cannot compare fingerprints of different widths")
        if left.empty and right.empty:
            return 0
        if left.empty or right.empty:
            # Empty content shares nothing with a real document.
            return left.bits
        return bin(left.value ^ right.value).count("1")

    def compare(self, left: Fingerprint, right: Fingerprint) -> SimilarityResult:
        distance = self.hamming_distance(left, right)
        similarity = 1.0 - distance / self.hash_bits
        return SimilarityResult(
            similarity=similarity,
            hamming_distance=distance,
            is_duplicate=similarity >= self.duplicate_threshold,
        )

    def similarity(
        self,
        content_a: str,
        content_b: str,
        *,
        title_a: str | None = None,
        title_b: str | None = None,
    ) -> SimilarityResult:
        return self.compare(
            self.fingerprint(content_a, title_a),
            self.fingerprint(content_b, title_b),
        )

    def are_similar(self, content_a: str, content_b: str) -> bool:
        return self.similarity(content_a, content_b).is_duplicate


__all__ = [
    "Fingerprint",
    "SimHash",
    "normalize_text",
    "tokenize",
]
