"""
HTTP fetching with bounded retries and backoff.

Retried:      429, 5xx, network errors and timeouts
Not retried:  other 4xx (and any non-2xx we do not understand), bad URLs,
              undecodable bodies
Backoff:      250 ms doubling to 2000 ms, plus 0-120 ms jitter; a numeric
              Retry-After header (capped at 10 s) replaces the computed wait
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

import aiohttp

from .config import (
    BACKOFF_BASE_MS,
    BACKOFF_JITTER_MS,
    BACKOFF_MAX_MS,
    CONNECT_TIMEOUT,
    FETCH_ATTEMPTS,
    REQUEST_HEADERS,
    REQUEST_TIMEOUT,
    RETRY_AFTER_CAP_MS,
)

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Outcome of a single GET. Consumed immediately, never persisted."""
    status_code: int
    body: str
    content_type: Optional[str] = None
    retry_after: Optional[float] = None  # seconds

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        if not self.content_type:
            return False
        return "text/html" in self.content_type.lower()


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Retry-After in seconds. Only the delta-seconds form is understood."""
    if value is None:
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        return None
    return float(seconds) if seconds >= 0 else None


def is_retryable_status(status: int) -> bool:
    return status == 429 or 500 <= status <= 599


class AiohttpTransport:
    """
    Thin GET client over a shared aiohttp session.
    Follows redirects and applies connect + total timeouts to every request.
    """

    def __init__(
        self,
        headers: Optional[Dict[str, str]] = None,
        connect_timeout: float = CONNECT_TIMEOUT,
        request_timeout: float = REQUEST_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.headers = dict(headers or REQUEST_HEADERS)
        self.connect_timeout = connect_timeout
        self.request_timeout = request_timeout
        self._session = session
        self._owns_session = session is None

    async def open(self):
        """Create the session (idempotent)."""
        if self._session is not None:
            return
        timeout = aiohttp.ClientTimeout(
            total=self.request_timeout,
            connect=self.connect_timeout,
        )
        self._session = aiohttp.ClientSession(
            headers=self.headers,
            timeout=timeout,
            cookie_jar=aiohttp.DummyCookieJar(),
        )
        self._owns_session = True

    async def close(self):
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def get(self, url: str, timeout: Optional[float] = None) -> FetchResult:
        """Perform one GET. Network failures raise aiohttp/timeout errors."""
        if self._session is None:
            raise RuntimeError("transport is not open")

        kwargs = {}
        if timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(
                total=timeout,
                connect=min(timeout, self.connect_timeout),
            )

        async with self._session.get(url, allow_redirects=True, **kwargs) as response:
            body = await response.text(errors="replace")
            return FetchResult(
                status_code=response.status,
                body=body,
                content_type=response.headers.get("Content-Type"),
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )


class Fetcher:
    """Retrying front end to the transport."""

    def __init__(
        self,
        transport,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        backoff_base_ms: int = BACKOFF_BASE_MS,
        backoff_max_ms: int = BACKOFF_MAX_MS,
        jitter_ms: int = BACKOFF_JITTER_MS,
        retry_after_cap_ms: int = RETRY_AFTER_CAP_MS,
    ):
        self.transport = transport
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.backoff_base_ms = backoff_base_ms
        self.backoff_max_ms = backoff_max_ms
        self.jitter_ms = jitter_ms
        self.retry_after_cap_ms = retry_after_cap_ms
        self.retries = 0

    def _jitter(self) -> int:
        if self.jitter_ms <= 0:
            return 0
        return self._rng.randrange(self.jitter_ms)

    def _compute_wait_ms(self, result: FetchResult, backoff_ms: float) -> float:
        if result.retry_after is not None and result.retry_after > 0:
            return min(result.retry_after * 1000.0, self.retry_after_cap_ms)
        return backoff_ms + self._jitter()

    async def fetch_with_retries(self, url: str, max_attempts: int = FETCH_ATTEMPTS) -> Optional[FetchResult]:
        """
        Fetch `url`, retrying transient failures.

        Returns the first 2xx result, a non-retryable result as-is, or None
        when the URL is unusable or every attempt failed. Cancellation
        propagates immediately.
        """
        backoff_ms = float(self.backoff_base_ms)

        for attempt in range(1, max_attempts + 1):
            final = attempt == max_attempts
            try:
                result = await self.transport.get(url)
            except aiohttp.InvalidURL as e:
                logger.debug("Invalid URL %s: %s", url, e)
                return None
            except (UnicodeDecodeError, LookupError) as e:
                logger.debug("Could not decode body of %s: %s", url, e)
                return None
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                logger.debug("Attempt %d/%d for %s failed: %r", attempt, max_attempts, url, e)
                if final:
                    break
                wait_ms = backoff_ms + self._jitter()
            else:
                if result.ok or not is_retryable_status(result.status_code):
                    return result
                logger.debug("Attempt %d/%d for %s returned %d", attempt, max_attempts, url, result.status_code)
                if final:
                    break
                wait_ms = self._compute_wait_ms(result, backoff_ms)

            self.retries += 1
            await self._sleep(wait_ms / 1000.0)
            backoff_ms = min(backoff_ms * 2, self.backoff_max_ms)

        logger.info("Giving up on %s after %d attempts", url, max_attempts)
        return None
