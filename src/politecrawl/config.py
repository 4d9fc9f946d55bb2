"""
Configuration settings for the polite crawler.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

# =============================================================================
# PATHS (using pathlib for cross-platform compatibility)
# =============================================================================

BASE_DIR = Path(__file__).parent.parent.parent.resolve()  # Up from src/politecrawl/ to project root
SEEDS_FILE = BASE_DIR / "configs" / "seeds.json"
OUTPUT_FILE = BASE_DIR / "data" / "crawled_data.txt"

# =============================================================================
# CRAWLING SETTINGS
# =============================================================================

MAX_PAGES = 50                   # Stop once this many pages have been stored
NUM_WORKERS = 10                 # Parallel worker tasks
DEFAULT_DELAY_MS = 1000          # Per-host politeness delay when robots.txt sets no Crawl-delay
FETCH_ATTEMPTS = 3               # Attempts per URL (first try + retries)
FRONTIER_POLL_TIMEOUT = 0.5      # Seconds a worker waits on an empty frontier before re-checking stop

# Monitor / supervisor
MONITOR_INTERVAL = 0.5           # Seconds between monitor ticks
EMPTY_TICKS_TO_STOP = 6          # Consecutive idle ticks (empty frontier, nothing in flight) before stopping
WORKER_JOIN_TIMEOUT = 5.0        # Seconds to wait for cancelled workers on shutdown
STORAGE_STOP_TIMEOUT = 3.0       # Seconds to wait for the storage writer to drain

# =============================================================================
# HTTP SETTINGS
# =============================================================================

CONNECT_TIMEOUT = 5              # Connection timeout (seconds)
REQUEST_TIMEOUT = 8              # Total per-request timeout (seconds)
ROBOTS_TIMEOUT = 5               # Total timeout for robots.txt fetches (seconds)

BACKOFF_BASE_MS = 250            # First retry wait
BACKOFF_MAX_MS = 2000            # Retry wait cap
BACKOFF_JITTER_MS = 120          # Random extra wait added to computed backoff
RETRY_AFTER_CAP_MS = 10000       # Longest Retry-After we are willing to honour

ROBOTS_CACHE_TTL = 6 * 60 * 60   # robots.txt cache lifetime (seconds)

# =============================================================================
# HTTP HEADERS
# =============================================================================

ROBOTS_AGENT = "Crawler"         # Token matched against robots.txt User-agent groups
USER_AGENT = "Crawler/1.0"

REQUEST_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

# =============================================================================
# FILE ENCODING (Cross-platform)
# =============================================================================

FILE_ENCODING = "utf-8"


@dataclass
class CrawlerConfig:
    """Tunable settings for one crawl. Defaults mirror the module constants."""
    output_path: Path = OUTPUT_FILE
    default_delay_ms: int = DEFAULT_DELAY_MS
    fetch_attempts: int = FETCH_ATTEMPTS
    poll_timeout: float = FRONTIER_POLL_TIMEOUT
    monitor_interval: float = MONITOR_INTERVAL
    empty_ticks_to_stop: int = EMPTY_TICKS_TO_STOP
    worker_join_timeout: float = WORKER_JOIN_TIMEOUT
    storage_stop_timeout: float = STORAGE_STOP_TIMEOUT
    connect_timeout: float = CONNECT_TIMEOUT
    request_timeout: float = REQUEST_TIMEOUT
    robots_timeout: float = ROBOTS_TIMEOUT
    robots_agent: str = ROBOTS_AGENT
    robots_ttl: float = ROBOTS_CACHE_TTL
    headers: Dict[str, str] = field(default_factory=lambda: dict(REQUEST_HEADERS))
