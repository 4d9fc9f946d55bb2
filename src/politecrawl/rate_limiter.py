"""
Per-host politeness scheduler.

Each host keeps a "next allowed instant". A caller reserves the slot
max(next, now), pushes next forward by its delay, then sleeps until its slot.
The reservation has no await in it, so concurrent callers on the event loop
always receive slots at least `delay_ms` apart.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

from .config import DEFAULT_DELAY_MS
from .urls import host_of

logger = logging.getLogger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class RateLimiter:
    """Monotonic per-host slot reservation."""

    def __init__(
        self,
        default_delay_ms: int = DEFAULT_DELAY_MS,
        clock: Callable[[], float] = _monotonic_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.default_delay_ms = default_delay_ms
        self._clock = clock
        self._sleep = sleep
        self._next_allowed: Dict[str, float] = {}

    def reserve(self, host: str, delay_ms: float) -> float:
        """Reserve the next slot for `host`; returns the slot instant in ms."""
        now = self._clock()
        previous = self._next_allowed.get(host, 0.0)
        slot = max(previous, now)
        self._next_allowed[host] = slot + delay_ms
        return slot

    async def acquire(self, url: str, delay_ms: Optional[float] = None) -> Optional[float]:
        """
        Wait for this caller's turn on the URL's host.

        Returns the granted slot (monotonic ms), or None for URLs without a
        host, which are not limited.
        """
        host = host_of(url)
        if host is None:
            return None
        if delay_ms is None:
            delay_ms = self.default_delay_ms

        slot = self.reserve(host, delay_ms)
        wait_ms = slot - self._clock()
        if wait_ms > 0:
            logger.debug("Rate limit: waiting %.0f ms for %s", wait_ms, host)
            await self._sleep(wait_ms / 1000.0)
        return slot

    def next_allowed(self, host: str) -> Optional[float]:
        return self._next_allowed.get(host)

    def host_count(self) -> int:
        return len(self._next_allowed)
