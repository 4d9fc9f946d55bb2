"""
Polite multi-worker web crawler.

Features:
- Supervised asyncio worker pool over a shared FIFO frontier
- robots.txt respect (Allow/Disallow longest-prefix, Crawl-delay), cached per host
- Per-host politeness delay via monotonic slot reservation
- Retries with exponential backoff, jitter and Retry-After
- Single-writer append-only storage
- Stops on page cap, manual request, or an exhausted frontier
"""

from .config import CrawlerConfig
from .controller import CrawlController
from .errors import ConfigurationError, CrawlerError, StorageUnavailableError
from .urls import ScopePolicy, normalize

__all__ = [
    "CrawlController",
    "CrawlerConfig",
    "CrawlerError",
    "ConfigurationError",
    "StorageUnavailableError",
    "ScopePolicy",
    "normalize",
]
