"""
Crawl controller: owns the frontier, supervises the worker pool and decides
when the crawl is over.

Stop conditions (checked by the monitor every tick):
- stop requested (manually, or by a worker that filled the page cap)
- pages stored reached max_pages
- frontier empty and nothing in flight for several consecutive ticks

A crashed worker is logged and replaced while the crawl is still running.
"""

import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional

from .config import CrawlerConfig, MAX_PAGES, NUM_WORKERS
from .context import CrawlContext
from .errors import ConfigurationError
from .fetcher import AiohttpTransport, Fetcher
from .links import parse_links
from .rate_limiter import RateLimiter
from .robots import RobotsService
from .storage import StorageSink
from .urls import ScopePolicy, normalize
from .worker import Worker, WorkerCrashed, WorkerHandle

logger = logging.getLogger(__name__)


class CrawlController:
    def __init__(
        self,
        seeds: Iterable[str],
        max_pages: int = MAX_PAGES,
        num_workers: int = NUM_WORKERS,
        config: Optional[CrawlerConfig] = None,
        transport=None,
        link_parser: Callable[[str, str], Iterable[str]] = parse_links,
    ):
        if max_pages < 1:
            raise ConfigurationError("max_pages must be at least 1")
        if num_workers < 1:
            raise ConfigurationError("num_workers must be at least 1")

        self.config = config or CrawlerConfig()
        self.seeds = list(seeds)
        self.num_workers = num_workers
        self.link_parser = link_parser

        self.scope = ScopePolicy.from_seeds(self.seeds)
        if not self.scope.allowed_hosts:
            raise ConfigurationError("No usable seed URLs")

        self.ctx = CrawlContext(max_pages)
        for seed in self.seeds:
            self.ctx.visited.claim_and_enqueue(normalize(seed), self.ctx.frontier)

        self._owns_transport = transport is None
        self.transport = transport or AiohttpTransport(
            headers=self.config.headers,
            connect_timeout=self.config.connect_timeout,
            request_timeout=self.config.request_timeout,
        )
        self.robots = RobotsService(
            self.transport,
            agent=self.config.robots_agent,
            ttl=self.config.robots_ttl,
            timeout=self.config.robots_timeout,
        )
        self.rate_limiter = RateLimiter(self.config.default_delay_ms)
        self.fetcher = Fetcher(self.transport)
        self.storage = StorageSink(self.config.output_path)

        self.handles: List[WorkerHandle] = []
        self._next_worker_id = 1
        self._monitor_task: Optional[asyncio.Task] = None
        self._empty_ticks = 0
        self._started = False
        self._shutdown_started = False
        self._finished = asyncio.Event()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self):
        """Open storage and HTTP, spawn the workers and the monitor."""
        if self._started:
            return
        self._started = True

        await self.storage.start()
        if self._owns_transport:
            await self.transport.open()

        for _ in range(self.num_workers):
            self._spawn_worker()
        self._monitor_task = asyncio.create_task(self._monitor(), name="crawler-monitor")

        logger.info("Crawl started: %d seeds, %d workers, max %d pages, scope %s",
                    self.ctx.frontier.qsize(), self.num_workers, self.ctx.max_pages,
                    ", ".join(sorted(self.scope.allowed_hosts)))

    async def run(self):
        """Start the crawl and wait until shutdown has completed."""
        await self.start()
        await self._finished.wait()

    def request_stop(self):
        """Ask for a graceful stop; the monitor performs the shutdown."""
        self.ctx.request_stop("manual")

    @property
    def stop_reason(self) -> Optional[str]:
        return self.ctx.stop_reason

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def _spawn_worker(self) -> WorkerHandle:
        worker = Worker(
            self._next_worker_id,
            self.ctx,
            robots=self.robots,
            rate_limiter=self.rate_limiter,
            fetcher=self.fetcher,
            storage=self.storage,
            scope=self.scope,
            link_parser=self.link_parser,
            default_delay_ms=self.config.default_delay_ms,
            fetch_attempts=self.config.fetch_attempts,
            poll_timeout=self.config.poll_timeout,
        )
        self._next_worker_id += 1
        handle = WorkerHandle.spawn(worker)
        self.handles.append(handle)
        return handle

    # =========================================================================
    # MONITOR
    # =========================================================================

    async def _monitor(self):
        try:
            while True:
                await asyncio.sleep(self.config.monitor_interval)
                if self.tick():
                    break
        except Exception:
            logger.exception("Monitor failed, stopping crawl")
            self.ctx.request_stop("error")
        await self.shutdown()

    def tick(self) -> bool:
        """One monitor pass. Returns True when the crawl should shut down."""
        ctx = self.ctx
        logger.debug("stop=%s stored=%d queue=%d in_flight=%d workers=%d",
                     ctx.stop_requested, ctx.pages_stored, ctx.frontier.qsize(),
                     ctx.in_flight, len(self.handles))

        if ctx.stop_requested:
            return True
        if ctx.cap_reached:
            logger.info("Reached max_pages (%d), stopping", ctx.max_pages)
            ctx.request_stop("max_pages")
            return True

        if ctx.frontier.empty() and ctx.in_flight == 0:
            self._empty_ticks += 1
            if self._empty_ticks >= self.config.empty_ticks_to_stop:
                logger.info("Frontier empty and no work in flight, stopping")
                ctx.request_stop("exhausted")
                return True
        else:
            self._empty_ticks = 0

        self._reap_workers()
        return False

    def _reap_workers(self):
        """Drop finished handles; replace crashed workers while the crawl runs."""
        for handle in list(self.handles):
            outcome = handle.outcome()
            if outcome is None:
                continue
            self.handles.remove(handle)
            if not isinstance(outcome, WorkerCrashed):
                continue

            self.ctx.stats.worker_crashes += 1
            logger.error("worker-%d crashed with exception: %r", outcome.worker_id, outcome.cause)
            if not self.ctx.stop_requested and not self._shutdown_started:
                replacement = self._spawn_worker()
                self.ctx.stats.workers_respawned += 1
                logger.warning("Respawned %s to maintain concurrency", replacement.worker.name)

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    async def shutdown(self):
        """
        Stop everything exactly once: workers, monitor, storage, HTTP.
        Concurrent callers wait for the first one to finish.
        """
        if self._shutdown_started:
            await self._finished.wait()
            return
        self._shutdown_started = True

        try:
            self.ctx.request_stop("manual")
            logger.info("Shutting down crawler (reason: %s)", self.ctx.stop_reason)

            pending_tasks = []
            monitor = self._monitor_task
            if monitor is not None and monitor is not asyncio.current_task():
                monitor.cancel()
                pending_tasks.append(monitor)
            for handle in self.handles:
                handle.cancel()
                pending_tasks.append(handle.task)

            if pending_tasks:
                _, still_running = await asyncio.wait(pending_tasks, timeout=self.config.worker_join_timeout)
                if still_running:
                    logger.warning("%d tasks did not stop within %.1fs",
                                   len(still_running), self.config.worker_join_timeout)

            await self.storage.stop(self.config.storage_stop_timeout)
            if self._owns_transport:
                await self.transport.close()

            logger.info("Stopped; pages stored=%d, seen URLs=%d",
                        self.ctx.pages_stored, self.ctx.visited.seen_count)
        finally:
            self._finished.set()

    # =========================================================================
    # OBSERVATION
    # =========================================================================

    def snapshot(self) -> Dict[str, int]:
        ctx = self.ctx
        return {
            "pages_stored": ctx.pages_stored,
            "max_pages": ctx.max_pages,
            "queue": ctx.frontier.qsize(),
            "in_flight": ctx.in_flight,
            "workers": sum(1 for h in self.handles if not h.done()),
            "seen": ctx.visited.seen_count,
            "retries": self.fetcher.retries,
            "robots_hosts": len(self.robots.cached_hosts()),
        }
