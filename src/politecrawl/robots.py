"""
robots.txt fetching, caching and evaluation.

Supported directives: User-agent, Allow, Disallow, Crawl-delay.
Rules are plain path prefixes (no wildcards or `$` anchors). Between Allow
and Disallow the longest matching prefix wins; ties go to Allow.

A host whose robots.txt cannot be fetched (network error, 4xx/5xx on both
https and http) is treated as fully allowed, and that outcome is not cached.

The cache is keyed by authority: host plus any non-default port. A server on
host:8080 gets its own robots.txt lookup (https://host:8080/robots.txt), apart
from the one on the default port.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import aiohttp

from .config import ROBOTS_AGENT, ROBOTS_CACHE_TTL, ROBOTS_TIMEOUT
from .urls import DEFAULT_PORTS

logger = logging.getLogger(__name__)


@dataclass
class RobotsGroup:
    """Directives collected for one User-agent value while parsing."""
    allow: List[str] = field(default_factory=list)
    disallow: List[str] = field(default_factory=list)
    crawl_delay: Optional[int] = None


@dataclass(frozen=True)
class RobotsCheck:
    allowed: bool
    crawl_delay_ms: int = 0


ALLOW_ALL = RobotsCheck(allowed=True, crawl_delay_ms=0)


def longest_prefix_match(rules: Sequence[str], path: str) -> int:
    """Length of the longest non-empty rule that prefixes `path`, or -1."""
    best = -1
    for rule in rules:
        if rule and path.startswith(rule):
            best = max(best, len(rule))
    return best


@dataclass(frozen=True)
class RobotsRules:
    """The selected group for one host. Replaced as a whole, never edited."""
    allow_rules: Tuple[str, ...]
    disallow_rules: Tuple[str, ...]
    crawl_delay_seconds: Optional[int]
    fetched_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.fetched_at > self.ttl

    def is_allowed(self, path: str) -> bool:
        return longest_prefix_match(self.allow_rules, path) >= longest_prefix_match(self.disallow_rules, path)

    @property
    def crawl_delay_ms(self) -> int:
        if self.crawl_delay_seconds is not None and self.crawl_delay_seconds > 0:
            return self.crawl_delay_seconds * 1000
        return 0


def _strip_comment(line: str) -> str:
    idx = line.find("#")
    return line[:idx] if idx >= 0 else line


def parse_robots(body: str, agent: str = ROBOTS_AGENT) -> RobotsGroup:
    """
    Parse a robots.txt body and return the group that applies to `agent`:
    an exact (case-insensitive) User-agent match, else `*`, else an empty
    allow-all group.
    """
    groups: Dict[str, RobotsGroup] = {}
    current: Optional[RobotsGroup] = None

    for raw_line in body.splitlines():
        line = _strip_comment(raw_line).strip()
        if not line or ":" not in line:
            continue
        key, _, value = line.partition(":")
        key = key.strip().lower()
        value = value.strip()

        if key == "user-agent":
            current = groups.setdefault(value.lower(), RobotsGroup())
            continue
        if current is None:
            # directives before the first User-agent line belong to nobody
            continue

        if key == "allow":
            current.allow.append(value)
        elif key == "disallow":
            if value:
                current.disallow.append(value)
        elif key == "crawl-delay":
            try:
                current.crawl_delay = int(value)
            except ValueError:
                pass

    agent = agent.lower()
    if agent in groups:
        return groups[agent]
    if "*" in groups:
        return groups["*"]
    return RobotsGroup()


def _authority(url: str) -> Tuple[Optional[str], str]:
    """(host[:port], path) for a URL; host is None when missing or unparsable."""
    try:
        parts = urlsplit(url)
        host = parts.hostname
        port = parts.port
    except ValueError:
        return None, "/"
    if not host:
        return None, "/"
    authority = f"[{host}]" if ":" in host else host
    if port is not None and port != DEFAULT_PORTS.get(parts.scheme.lower()):
        authority = f"{authority}:{port}"
    return authority, parts.path or "/"


class RobotsService:
    """Per-host robots.txt cache shared by all workers."""

    def __init__(
        self,
        transport,
        agent: str = ROBOTS_AGENT,
        ttl: float = ROBOTS_CACHE_TTL,
        timeout: float = ROBOTS_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        self.transport = transport
        self.agent = agent
        self.ttl = ttl
        self.timeout = timeout
        self._clock = clock
        self._cache: Dict[str, RobotsRules] = {}
        self._host_locks: Dict[str, asyncio.Lock] = {}

    async def check(self, url: str) -> RobotsCheck:
        """Is `url` allowed for this crawler, and what Crawl-delay applies?"""
        authority, path = _authority(url)
        if authority is None:
            return ALLOW_ALL

        rules = await self.rules_for(authority)
        if rules is None:
            return ALLOW_ALL
        return RobotsCheck(allowed=rules.is_allowed(path), crawl_delay_ms=rules.crawl_delay_ms)

    def _fresh(self, authority: str) -> Optional[RobotsRules]:
        rules = self._cache.get(authority)
        if rules is not None and not rules.is_expired(self._clock()):
            return rules
        return None

    async def rules_for(self, authority: str) -> Optional[RobotsRules]:
        """Cached rules for a host, fetching them when missing or expired."""
        rules = self._fresh(authority)
        if rules is not None:
            return rules

        # one fetch per host; other hosts are not held up
        lock = self._host_locks.setdefault(authority, asyncio.Lock())
        async with lock:
            rules = self._fresh(authority)
            if rules is not None:
                return rules
            rules = await self._fetch_rules(authority)
            if rules is not None:
                self._cache[authority] = rules
            else:
                logger.debug("No usable robots.txt for %s, allowing all", authority)
            return rules

    async def _fetch_rules(self, authority: str) -> Optional[RobotsRules]:
        for scheme in ("https", "http"):
            robots_url = f"{scheme}://{authority}/robots.txt"
            try:
                result = await self.transport.get(robots_url, timeout=self.timeout)
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError, UnicodeDecodeError, LookupError) as e:
                logger.debug("robots.txt fetch failed for %s: %r", robots_url, e)
                continue
            if result.status_code >= 400:
                logger.debug("robots.txt at %s returned %d", robots_url, result.status_code)
                continue

            group = parse_robots(result.body, self.agent)
            return RobotsRules(
                allow_rules=tuple(group.allow),
                disallow_rules=tuple(group.disallow),
                crawl_delay_seconds=group.crawl_delay,
                fetched_at=self._clock(),
                ttl=self.ttl,
            )
        return None

    def cached_hosts(self) -> List[str]:
        return list(self._cache)
