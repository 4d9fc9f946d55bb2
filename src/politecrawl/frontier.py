"""
Shared URL frontier and the claim-once visited set.

Both are used from many worker tasks on one event loop. Operations that must
be indivisible contain no await, so no other task can run in between.
"""

import asyncio
from typing import Optional, Set


class Frontier:
    """Unbounded FIFO of normalized URLs awaiting a fetch attempt."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()

    def put(self, url: str):
        self._queue.put_nowait(url)

    async def poll(self, timeout: float) -> Optional[str]:
        """Wait up to `timeout` seconds for a URL; None if none arrived."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()


class VisitedSet:
    """Every URL ever enqueued. A URL enters the frontier at most once."""

    def __init__(self):
        self._seen: Set[str] = set()

    def claim_and_enqueue(self, url: Optional[str], frontier: Frontier) -> bool:
        """
        Mark `url` as seen and push it onto the frontier.
        Returns False (and enqueues nothing) if it was already seen.
        """
        if url is None:
            return False
        if url in self._seen:
            return False
        self._seen.add(url)
        frontier.put(url)
        return True

    def __contains__(self, url: str) -> bool:
        return url in self._seen

    @property
    def seen_count(self) -> int:
        return len(self._seen)
