"""
State shared by the controller and every worker.

One CrawlContext is created per crawl and handed to each worker at
construction; nothing here is module-global. Counter updates are plain
increments with no await, so they are indivisible on the event loop.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional

from .frontier import Frontier, VisitedSet

RECENT_URLS_KEPT = 8


@dataclass
class CrawlStats:
    """Observational counters for the dashboard and final summary."""
    failed_urls: int = 0
    robots_blocked: int = 0
    non_html_skipped: int = 0
    links_enqueued: int = 0
    worker_crashes: int = 0
    workers_respawned: int = 0
    current_urls: List[str] = field(default_factory=list)
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    def note_current(self, url: str):
        self.current_urls.append(url[-60:])
        if len(self.current_urls) > RECENT_URLS_KEPT:
            self.current_urls.pop(0)


class CrawlContext:
    """Frontier, visited set, stop flag and the pages_stored / in_flight counters."""

    def __init__(self, max_pages: int, frontier: Optional[Frontier] = None,
                 visited: Optional[VisitedSet] = None):
        self.max_pages = max_pages
        self.frontier = frontier or Frontier()
        self.visited = visited or VisitedSet()
        self.pages_stored = 0
        self.in_flight = 0
        self.stats = CrawlStats()
        self._stop_requested = False
        self.stop_reason: Optional[str] = None

    # -- stop flag ---------------------------------------------------------

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self, reason: str = "manual"):
        """Raise the stop flag. The first reason given is kept."""
        if not self._stop_requested:
            self._stop_requested = True
            self.stop_reason = reason

    # -- counters ----------------------------------------------------------

    @property
    def cap_reached(self) -> bool:
        return self.pages_stored >= self.max_pages

    def record_stored(self) -> int:
        self.pages_stored += 1
        return self.pages_stored

    def enter_flight(self):
        self.in_flight += 1

    def leave_flight(self):
        self.in_flight -= 1

    @property
    def urls_per_minute(self) -> float:
        elapsed = self.stats.elapsed_time
        if elapsed > 0:
            return (self.pages_stored / elapsed) * 60
        return 0.0
