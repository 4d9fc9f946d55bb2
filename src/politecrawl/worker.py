"""
The per-task crawl loop and the typed outcome a worker task finishes with.

Each iteration: dequeue -> robots check -> politeness wait -> fetch ->
store -> extract links -> enqueue new in-scope links. A worker exits on the
stop flag, on reaching the page cap, or on cancellation. Any other exception
escapes run() and is reported to the controller as a crash.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Union

from .config import DEFAULT_DELAY_MS, FETCH_ATTEMPTS, FRONTIER_POLL_TIMEOUT
from .context import CrawlContext
from .links import parse_links
from .urls import ScopePolicy, normalize

logger = logging.getLogger(__name__)


# =============================================================================
# WORKER OUTCOMES
# =============================================================================

@dataclass(frozen=True)
class WorkerCompleted:
    """run() returned normally (stop flag or page cap)."""
    worker_id: int


@dataclass(frozen=True)
class WorkerCrashed:
    """run() raised an unexpected exception."""
    worker_id: int
    cause: BaseException


@dataclass(frozen=True)
class WorkerCancelled:
    """The task was cancelled, normally during shutdown."""
    worker_id: int


WorkerOutcome = Union[WorkerCompleted, WorkerCrashed, WorkerCancelled]


# =============================================================================
# WORKER
# =============================================================================

class Worker:
    def __init__(
        self,
        worker_id: int,
        ctx: CrawlContext,
        robots,
        rate_limiter,
        fetcher,
        storage,
        scope: ScopePolicy,
        link_parser: Callable[[str, str], Iterable[str]] = parse_links,
        default_delay_ms: int = DEFAULT_DELAY_MS,
        fetch_attempts: int = FETCH_ATTEMPTS,
        poll_timeout: float = FRONTIER_POLL_TIMEOUT,
    ):
        self.worker_id = worker_id
        self.ctx = ctx
        self.robots = robots
        self.rate_limiter = rate_limiter
        self.fetcher = fetcher
        self.storage = storage
        self.scope = scope
        self.link_parser = link_parser
        self.default_delay_ms = default_delay_ms
        self.fetch_attempts = fetch_attempts
        self.poll_timeout = poll_timeout

    @property
    def name(self) -> str:
        return f"worker-{self.worker_id}"

    async def run(self):
        """Process URLs until stopped. Unexpected errors propagate."""
        ctx = self.ctx
        while not ctx.stop_requested:
            if ctx.cap_reached:
                ctx.request_stop("max_pages")
                break

            url = await ctx.frontier.poll(self.poll_timeout)
            if url is None:
                continue
            if ctx.stop_requested:
                break

            ctx.enter_flight()
            try:
                keep_going = await self._process(url)
            finally:
                ctx.leave_flight()
            if not keep_going:
                break

        logger.debug("[%s] exiting", self.name)

    async def _process(self, url: str) -> bool:
        """Handle one URL. Returns False when the worker should exit."""
        ctx = self.ctx

        check = await self.robots.check(url)
        if not check.allowed:
            logger.info("[%s] disallowed by robots.txt: %s", self.name, url)
            ctx.stats.robots_blocked += 1
            return True

        delay_ms = check.crawl_delay_ms if check.crawl_delay_ms > 0 else self.default_delay_ms
        await self.rate_limiter.acquire(url, delay_ms)
        if ctx.stop_requested:
            return False

        logger.info("[%s] fetching: %s", self.name, url)
        ctx.stats.note_current(url)
        result = await self.fetcher.fetch_with_retries(url, self.fetch_attempts)
        if result is None:
            ctx.stats.failed_urls += 1
            return True
        if not result.ok:
            logger.warning("[%s] error for %s: %d", self.name, url, result.status_code)
            ctx.stats.failed_urls += 1
            return True
        if not result.is_html:
            logger.debug("[%s] skipping non-HTML %s (%s)", self.name, url, result.content_type)
            ctx.stats.non_html_skipped += 1
            return True

        # another worker may have filled the cap while this one was fetching
        if ctx.cap_reached:
            ctx.request_stop("max_pages")
            return False

        self.storage.store_async(url, result.body)
        if ctx.record_stored() >= ctx.max_pages:
            ctx.request_stop("max_pages")
            return False

        # HTML parsing is CPU-bound; keep it off the event loop
        loop = asyncio.get_running_loop()
        links = await loop.run_in_executor(None, self.link_parser, result.body, url)
        for link in links:
            if ctx.stop_requested:
                break
            normalized = normalize(link)
            if normalized is None or not self.scope.is_in_scope(normalized):
                continue
            if ctx.visited.claim_and_enqueue(normalized, ctx.frontier):
                ctx.stats.links_enqueued += 1
        return True


# =============================================================================
# SUPERVISION
# =============================================================================

async def supervise(worker: Worker) -> WorkerOutcome:
    """Run a worker and turn its ending into an outcome. Cancellation propagates."""
    try:
        await worker.run()
    except Exception as e:
        logger.error("[%s] crashed: %r", worker.name, e, exc_info=True)
        return WorkerCrashed(worker.worker_id, e)
    return WorkerCompleted(worker.worker_id)


class WorkerHandle:
    """Controller-side reference to a running worker task."""

    def __init__(self, worker: Worker, task: asyncio.Task):
        self.worker = worker
        self.task = task

    @classmethod
    def spawn(cls, worker: Worker) -> "WorkerHandle":
        task = asyncio.create_task(supervise(worker), name=worker.name)
        return cls(worker, task)

    @property
    def worker_id(self) -> int:
        return self.worker.worker_id

    def done(self) -> bool:
        return self.task.done()

    def cancel(self):
        self.task.cancel()

    def outcome(self) -> Optional[WorkerOutcome]:
        """The worker's outcome, or None while it is still running."""
        if not self.task.done():
            return None
        if self.task.cancelled():
            return WorkerCancelled(self.worker_id)
        return self.task.result()
