"""Typed crawl settings and runtime configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore

from .constants import (
    CRAWL_FREQUENCIES,
    DEFAULT_CRAWL_FREQUENCY,
    DEFAULT_CRAWL_TIMEOUT_SECONDS,
    DEFAULT_DEDUP_ENABLED,
    DEFAULT_DUPLICATE_THRESHOLD,
    DEFAULT_HEAD_TIMEOUT_SECONDS,
    DEFAULT_HTTP_HEADERS,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES,
    DEFAULT_MAX_SITEMAP_ATTEMPTS,
    DEFAULT_RATE_LIMIT_SECONDS,
    DEFAULT_RESPECT_ROBOTS_TXT,
    DEFAULT_RETRY_BASE_DELAY_SECONDS,
    DEFAULT_SIMHASH_BITS,
    DEFAULT_SITEMAP_MAX_RECURSION,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    JSON_INDENT,
    MAX_DEPTH_LIMIT,
    MAX_PAGES_LIMIT,
    SUPPORTED_CONFIG_SUFFIXES,
    VALIDATION_USER_AGENT,
)
from .types import JSONDict


def _as_float(value: Any, key: str) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid float for '{key}': {value!r}") from exc


def _as_int(value: Any, key: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid int for '{key}': {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid int for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"Invalid bool for '{key}': {value!r}")


def _as_patterns(value: Any, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value)
    raise ValueError(f"Invalid pattern list for '{key}': {value!r}")


@dataclass(frozen=True, slots=True)
class CrawlSettings:
    """Caller-supplied crawl request bounds.

    Bounds are not rejected here: planning validates them and the budget
    calculator clamps them to the hard maxima.
    """

    max_pages: int = DEFAULT_MAX_PAGES
    max_depth: int = DEFAULT_MAX_DEPTH
    respect_robots_txt: bool = DEFAULT_RESPECT_ROBOTS_TXT
    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()
    crawl_frequency: str = DEFAULT_CRAWL_FREQUENCY

    def __post_init__(self) -> None:
        if isinstance(self.max_pages, bool) or not isinstance(self.max_pages, int):
            raise TypeError(f"max_pages must be an int, got {self.max_pages!r}")
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int):
            raise TypeError(f"max_depth must be an int, got {self.max_depth!r}")
        if self.crawl_frequency not in CRAWL_FREQUENCIES:
            raise ValueError(
                f"crawl_frequency must be one of {CRAWL_FREQUENCIES}, got {self.crawl_frequency!r}"
            )
        # Lists passed by callers are frozen into tuples.
        object.__setattr__(self, "include_patterns", tuple(self.include_patterns))
        object.__setattr__(self, "exclude_patterns", tuple(self.exclude_patterns))

    def clamped(self) -> "CrawlSettings":
        """Return a copy with page/depth bounds forced into the hard limits."""

        return replace(
            self,
            max_pages=max(1, min(self.max_pages, MAX_PAGES_LIMIT)),
            max_depth=max(1, min(self.max_depth, MAX_DEPTH_LIMIT)),
        )

    def to_dict(self) -> JSONDict:
        return {
            "max_pages": self.max_pages,
            "max_depth": self.max_depth,
            "respect_robots_txt": self.respect_robots_txt,
            "include_patterns": list(self.include_patterns),
            "exclude_patterns": list(self.exclude_patterns),
            "crawl_frequency": self.crawl_frequency,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlSettings":
        return cls(
            max_pages=_as_int(payload.get("max_pages", DEFAULT_MAX_PAGES), "max_pages"),
            max_depth=_as_int(payload.get("max_depth", DEFAULT_MAX_DEPTH), "max_depth"),
            respect_robots_txt=_as_bool(
                payload.get("respect_robots_txt", DEFAULT_RESPECT_ROBOTS_TXT),
                "respect_robots_txt",
            ),
            include_patterns=_as_patterns(payload.get("include_patterns"), "include_patterns"),
            exclude_patterns=_as_patterns(payload.get("exclude_patterns"), "exclude_patterns"),
            crawl_frequency=str(payload.get("crawl_frequency", DEFAULT_CRAWL_FREQUENCY)),
        )


@dataclass(slots=True)
class CrawlerConfig:
    """Runtime knobs for fetching, discovery and deduplication."""

    user_agent: str = DEFAULT_USER_AGENT
    validation_user_agent: str = VALIDATION_USER_AGENT
    default_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HTTP_HEADERS))

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    head_timeout_seconds: float = DEFAULT_HEAD_TIMEOUT_SECONDS
    retry_base_delay_seconds: float = DEFAULT_RETRY_BASE_DELAY_SECONDS
    rate_limit_seconds: float = DEFAULT_RATE_LIMIT_SECONDS
    crawl_timeout_seconds: float | None = DEFAULT_CRAWL_TIMEOUT_SECONDS
    concurrency: int | None = None

    check_accessibility: bool = True
    use_sitemaps: bool = True
    prioritize_compressed_sitemaps: bool = False
    max_sitemap_attempts: int = DEFAULT_MAX_SITEMAP_ATTEMPTS
    sitemap_max_recursion: int = DEFAULT_SITEMAP_MAX_RECURSION

    dedup_enabled: bool = DEFAULT_DEDUP_ENABLED
    duplicate_threshold: float = DEFAULT_DUPLICATE_THRESHOLD
    simhash_bits: int = DEFAULT_SIMHASH_BITS
    available_memory_bytes: int | None = None

    def __post_init__(self) -> None:
        if not self.user_agent.strip():
            raise ValueError("user_agent must not be empty")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.head_timeout_seconds <= 0:
            raise ValueError("head_timeout_seconds must be > 0")
        if self.retry_base_delay_seconds < 0:
            raise ValueError("retry_base_delay_seconds must be >= 0")
        if self.rate_limit_seconds < 0:
            raise ValueError("rate_limit_seconds must be >= 0")
        if self.crawl_timeout_seconds is not None and self.crawl_timeout_seconds <= 0:
            raise ValueError("crawl_timeout_seconds must be > 0 when set")
        if self.concurrency is not None and not 1 <= self.concurrency <= 5:
            raise ValueError("concurrency must be between 1 and 5 when set")
        if not 1 <= self.max_sitemap_attempts <= 4:
            raise ValueError("max_sitemap_attempts must be between 1 and 4")
        if self.sitemap_max_recursion < 0:
            raise ValueError("sitemap_max_recursion must be >= 0")
        if not 0.0 <= self.duplicate_threshold <= 1.0:
            raise ValueError("duplicate_threshold must be within [0, 1]")
        if self.simhash_bits not in {32, 64, 128}:
            raise ValueError("simhash_bits must be 32, 64 or 128")
        if self.available_memory_bytes is not None and self.available_memory_bytes < 0:
            raise ValueError("available_memory_bytes must be >= 0 when set")

    def headers(self, *, user_agent: str | None = None) -> dict[str, str]:
        """Return request headers with the effective User-Agent applied."""

        merged = dict(self.default_headers)
        merged["User-Agent"] = user_agent or self.user_agent
        return merged

    def to_dict(self) -> JSONDict:
        return {
            "user_agent": self.user_agent,
            "validation_user_agent": self.validation_user_agent,
            "default_headers": self.default_headers,
            "timeout_seconds": self.timeout_seconds,
            "head_timeout_seconds": self.head_timeout_seconds,
            "retry_base_delay_seconds": self.retry_base_delay_seconds,
            "rate_limit_seconds": self.rate_limit_seconds,
            "crawl_timeout_seconds": self.crawl_timeout_seconds,
            "concurrency": self.concurrency,
            "check_accessibility": self.check_accessibility,
            "use_sitemaps": self.use_sitemaps,
            "prioritize_compressed_sitemaps": self.prioritize_compressed_sitemaps,
            "max_sitemap_attempts": self.max_sitemap_attempts,
            "sitemap_max_recursion": self.sitemap_max_recursion,
            "dedup_enabled": self.dedup_enabled,
            "duplicate_threshold": self.duplicate_threshold,
            "simhash_bits": self.simhash_bits,
            "available_memory_bytes": self.available_memory_bytes,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlerConfig":
        return cls(
            user_agent=str(payload.get("user_agent", DEFAULT_USER_AGENT)),
            validation_user_agent=str(
                payload.get("validation_user_agent", VALIDATION_USER_AGENT)
            ),
            default_headers={
                str(k): str(v)
                for k, v in dict(payload.get("default_headers", DEFAULT_HTTP_HEADERS)).items()
            },
            timeout_seconds=float(payload.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
            head_timeout_seconds=float(
                payload.get("head_timeout_seconds", DEFAULT_HEAD_TIMEOUT_SECONDS)
            ),
            retry_base_delay_seconds=float(
                payload.get("retry_base_delay_seconds", DEFAULT_RETRY_BASE_DELAY_SECONDS)
            ),
            rate_limit_seconds=float(
                payload.get("rate_limit_seconds", DEFAULT_RATE_LIMIT_SECONDS)
            ),
            crawl_timeout_seconds=_as_float(
                payload.get("crawl_timeout_seconds", DEFAULT_CRAWL_TIMEOUT_SECONDS),
                "crawl_timeout_seconds",
            ),
            concurrency=_as_int(payload.get("concurrency"), "concurrency"),
            check_accessibility=_as_bool(
                payload.get("check_accessibility", True), "check_accessibility"
            ),
            use_sitemaps=_as_bool(payload.get("use_sitemaps", True), "use_sitemaps"),
            prioritize_compressed_sitemaps=_as_bool(
                payload.get("prioritize_compressed_sitemaps", False),
                "prioritize_compressed_sitemaps",
            ),
            max_sitemap_attempts=int(
                payload.get("max_sitemap_attempts", DEFAULT_MAX_SITEMAP_ATTEMPTS)
            ),
            sitemap_max_recursion=int(
                payload.get("sitemap_max_recursion", DEFAULT_SITEMAP_MAX_RECURSION)
            ),
            dedup_enabled=_as_bool(
                payload.get("dedup_enabled", DEFAULT_DEDUP_ENABLED), "dedup_enabled"
            ),
            duplicate_threshold=float(
                payload.get("duplicate_threshold", DEFAULT_DUPLICATE_THRESHOLD)
            ),
            simhash_bits=int(payload.get("simhash_bits", DEFAULT_SIMHASH_BITS)),
            available_memory_bytes=_as_int(
                payload.get("available_memory_bytes"), "available_memory_bytes"
            ),
        )


@dataclass(slots=True)
class CrawlConfig:
    """File-level configuration: seed, request settings and runtime knobs."""

    seed_url: str | None = None
    settings: CrawlSettings = field(default_factory=CrawlSettings)
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)

    def __post_init__(self) -> None:
        if self.seed_url is not None:
            self.seed_url = self.seed_url.strip() or None

    def to_dict(self) -> JSONDict:
        """Serialize config for manifests and reproducibility."""

        return {
            "seed_url": self.seed_url,
            "settings": self.settings.to_dict(),
            "crawler": self.crawler.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build config from a parsed dictionary."""

        settings_payload = payload.get("settings") or {}
        crawler_payload = payload.get("crawler") or {}
        if not isinstance(settings_payload, Mapping):
            raise ValueError("'settings' must be a mapping")
        if not isinstance(crawler_payload, Mapping):
            raise ValueError("'crawler' must be a mapping")

        seed_url = payload.get("seed_url")
        return cls(
            seed_url=None if seed_url is None else str(seed_url),
            settings=CrawlSettings.from_dict(settings_payload),
            crawler=CrawlerConfig.from_dict(crawler_payload),
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: str | Path) -> CrawlConfig:
    """Load CrawlConfig from JSON/YAML path."""

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ValueError(f"Config at {config_path} must be a mapping")

    return CrawlConfig.from_dict(payload)


def save_config(config: CrawlConfig, path: str | Path) -> None:
    """Save CrawlConfig as JSON or YAML based on file extension."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = out_path.suffix.lower()
    payload = config.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return

    if suffix in {".yaml", ".yml"}:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return

    raise ValueError(
        f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
    )


__all__ = [
    "CrawlConfig",
    "CrawlSettings",
    "CrawlerConfig",
    "load_config",
    "save_config",
]
