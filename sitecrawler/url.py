"""URL normalization, canonical selection, and link extraction helpers."""

from __future__ import annotations

import posixpath
import re
from hashlib import sha256
from typing import Iterable
from urllib.parse import SplitResult, urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup


DEFAULT_PORTS = {"http": 80, "https": 443, "ftp": 21}
SKIP_HREF_PREFIXES = ("javascript:", "mailto:", "tel:", "data:")

# Characters that carry no delimiter meaning once decoded.
SAFE_DECODED_CHARS = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~!$'()*,:@"
)

_PERCENT_RUN_RE = re.compile(r"(?:%[0-9A-Fa-f]{2})+")


def hostname_of(url: str) -> str:
    """Return the lowercase hostname of `url`, or "" when it has none."""

    try:
        return (urlsplit(url.strip()).hostname or "").lower()
    except ValueError:
        return ""


def _encode_char(char: str) -> str:
    return "".join(f"%{byte:02X}" for byte in char.encode("utf-8"))


def _decode_run(match: re.Match[str]) -> str:
    run = match.group(0)
    raw = bytes(int(run[i + 1 : i + 3], 16) for i in range(0, len(run), 3))
    try:
        decoded = raw.decode("utf-8")
    except UnicodeDecodeError:
        return run.upper()

    out: list[str] = []
    for char in decoded:
        if char in SAFE_DECODED_CHARS or (ord(char) > 127 and char.isalnum()):
            out.append(char)
        else:
            out.append(_encode_char(char))
    return "".join(out)


def _normalize_escapes(component: str) -> str:
    """Decode safe percent-escapes and uppercase the ones that must stay."""

    if not component:
        return component
    return _PERCENT_RUN_RE.sub(_decode_run, component.replace(" ", "%20"))


def _normalize_netloc(parsed: SplitResult, scheme: str) -> str:
    host = (parsed.hostname or "").lower()
    while host.startswith("www.") and len(host) > 4:
        host = host[4:]

    userinfo = ""
    if parsed.username:
        userinfo = parsed.username
        if parsed.password:
            userinfo += ":" + parsed.password
        userinfo += "@"

    # Raises ValueError for a non-numeric or out-of-range port.
    port = parsed.port
    if ":" in host:
        host = f"[{host}]"

    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        return f"{userinfo}{host}:{port}"
    return f"{userinfo}{host}"


def _normalize_path(path: str) -> str:
    if not path:
        return ""

    collapsed = re.sub(r"/{2,}", "/", _normalize_escapes(path))
    normalized = posixpath.normpath(collapsed)

    if collapsed.startswith("/") and not normalized.startswith("/"):
        normalized = "/" + normalized

    if normalized in {"", ".", "/"}:
        return ""

    # normpath already drops the trailing slash of every non-root path.
    return normalized


def _normalize_query(query: str) -> str:
    if not query:
        return ""

    pairs = [_normalize_escapes(part) for part in query.split("&") if part]
    # Stable sort: duplicate keys keep their original value order.
    pairs.sort(key=lambda pair: pair.split("=", maxsplit=1)[0])
    return "&".join(pairs)


def normalize_url(url: str) -> str:
    """Canonicalize a URL so equivalent spellings collapse to one string.

    The function is total: input that cannot be parsed as an absolute URL is
    returned unchanged.
    """

    if not url:
        return url

    raw = url.strip()
    try:
        parsed = urlsplit(raw)
        if not parsed.scheme or not parsed.netloc or not parsed.hostname:
            return url
        scheme = parsed.scheme.lower()
        netloc = _normalize_netloc(parsed, scheme)
    except ValueError:
        return url

    path = _normalize_path(parsed.path)
    query = _normalize_query(parsed.query)
    return urlunsplit((scheme, netloc, path, query, ""))


def are_equivalent(url_a: str, url_b: str) -> bool:
    """Return True when both URLs normalize to the same string."""

    return normalize_url(url_a) == normalize_url(url_b)


def _canonical_rank(url: str) -> tuple[int, int, int, str]:
    try:
        parsed = urlsplit(url.strip())
    except ValueError:
        return (1, 1, len(url), url)
    return (
        0 if parsed.scheme.lower() == "https" else 1,
        1 if parsed.query else 0,
        len(parsed.path),
        url,
    )


def canonical_of(urls: Iterable[str]) -> str:
    """Pick the preferred spelling among equivalent URLs.

    Preference: HTTPS, then no query string, then shortest path, then
    lexicographic order. Returns "" for an empty input.
    """

    candidates = [url for url in urls if url]
    if not candidates:
        return ""
    return min(candidates, key=_canonical_rank)


def url_content_hash(url: str) -> str:
    """Hash of the normalized URL; equivalent URLs share a hash."""

    return sha256(normalize_url(url).encode("utf-8")).hexdigest()


def resolve_url(base_url: str, href: str | None) -> str | None:
    """Resolve a possibly relative link against `base_url`.

    Returns None for fragment-only, script, mail, phone and data links, and
    for results that are not HTTP(S).
    """

    if href is None:
        return None

    candidate = href.strip()
    if not candidate or candidate.startswith("#"):
        return None

    lowered = candidate.lower()
    if any(lowered.startswith(prefix) for prefix in SKIP_HREF_PREFIXES):
        return None

    try:
        absolute = urljoin(base_url, candidate)
        parsed = urlsplit(absolute)
    except ValueError:
        return None

    if parsed.scheme.lower() not in {"http", "https"} or not parsed.netloc:
        return None
    return absolute


def extract_links_from_html(
    html: str | bytes,
    *,
    base_url: str,
    include_nofollow: bool = True,
) -> list[str]:
    """Extract resolved links from HTML anchor/area tags.

    Returns absolute links in document order; links that normalize to the same
    URL are reported once.
    """

    soup = BeautifulSoup(html, "lxml")

    out: list[str] = []
    seen: set[str] = set()

    for element in soup.find_all(["a", "area"]):
        href = element.get("href")
        if not href:
            continue

        rel_values = {value.lower() for value in (element.get("rel") or [])}
        if not include_nofollow and "nofollow" in rel_values:
            continue

        resolved = resolve_url(base_url, href)
        if not resolved:
            continue

        key = normalize_url(resolved)
        if key in seen:
            continue

        seen.add(key)
        out.append(resolved)

    return out


__all__ = [
    "DEFAULT_PORTS",
    "SAFE_DECODED_CHARS",
    "SKIP_HREF_PREFIXES",
    "are_equivalent",
    "canonical_of",
    "extract_links_from_html",
    "hostname_of",
    "normalize_url",
    "resolve_url",
    "url_content_hash",
]
