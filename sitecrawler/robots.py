"""robots.txt checking consumed by crawl planning."""

from __future__ import annotations

import logging
import threading
from typing import Protocol
from urllib.parse import urlsplit
from urllib.robotparser import RobotFileParser

import requests

from .constants import DEFAULT_ROBOTS_TIMEOUT_SECONDS, VALIDATION_USER_AGENT

logger = logging.getLogger(__name__)


class RobotsChecker(Protocol):
    """Capability the planner needs from a robots.txt implementation."""

    def can_load(self, url: str) -> bool: ...

    def is_allowed(self, url: str, user_agent: str) -> bool: ...


class RobotsTxtChecker:
    """`RobotsChecker` backed by `urllib.robotparser` and `requests`.

    A missing robots.txt (4xx) allows everything. Network errors and 5xx
    responses leave the file unloadable, which planning treats as a block.
    """

    def __init__(
        self,
        *,
        user_agent: str = VALIDATION_USER_AGENT,
        timeout_seconds: float = DEFAULT_ROBOTS_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._lock = threading.Lock()
        self._cache: dict[str, RobotFileParser | None] = {}

    def can_load(self, url: str) -> bool:
        return self._parser_for(url) is not None

    def is_allowed(self, url: str, user_agent: str) -> bool:
        parser = self._parser_for(url)
        if parser is None:
            return False
        return parser.can_fetch(user_agent or "*", url)

    def _parser_for(self, url: str) -> RobotFileParser | None:
        parsed = urlsplit(url)
        host_key = f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"

        with self._lock:
            if host_key in self._cache:
                return self._cache[host_key]

        parser = self._load_robots_parser(host_key)
        with self._lock:
            self._cache[host_key] = parser
        return parser

    def _load_robots_parser(self, host_root: str) -> RobotFileParser | None:
        robots_url = f"{host_root}/robots.txt"

        try:
            response = self._session.get(
                robots_url,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            logger.warning("Could not load %s: %s", robots_url, exc)
            return None

        if response.status_code >= 500:
            logger.warning("robots.txt at %s returned %d", robots_url, response.status_code)
            return None

        parser = RobotFileParser()
        parser.set_url(robots_url)
        if response.status_code >= 400:
            parser.allow_all = True
            return parser

        parser.parse(response.text.splitlines())
        return parser


__all__ = ["RobotsChecker", "RobotsTxtChecker"]
