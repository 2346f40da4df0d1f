"""
Configuration for the Bitcointalk miner.

Forum constants live here as module-level values so that every component
builds URLs and page offsets from the same source. Per-run settings (request
delay, proxy) are carried by the frozen ``WebConfig`` dataclass.
"""

from dataclasses import dataclass
from typing import Optional

# Forum URLs
BASE_URL = "https://bitcointalk.org"
INDEX_URL = f"{BASE_URL}/index.php"
BOARD_PREFIX = f"{INDEX_URL}?board="
TOPIC_PREFIX = f"{INDEX_URL}?topic="
LINK_SUFFIX = ".0"
ALL_POSTS_SUFFIX = ";all"
PRINT_PAGE_PREFIX = f"{INDEX_URL}?action=printpage;topic="
RECENT_PAGE_PREFIX = f"{INDEX_URL}?action=recent;start="

# Records per page (also the step of the zero-based offset in page URLs)
BOARD_PAGE_SIZE = 40
TOPIC_PAGE_SIZE = 20
RECENT_PAGE_SIZE = 10

# The forum only serves this many "recent posts" pages
MAX_RECENT_PAGES = 10

# Request settings
DEFAULT_REQUEST_DELAY_MS = 2000
MAX_ATTEMPTS = 5
REQUEST_TIMEOUT = 30.0
DEFAULT_SMILEY_REPLACER = ","

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class WebConfig:
    """
    Settings for fetching pages from the forum.

    Attributes:
        request_delay_ms: Minimum number of milliseconds between two requests.
            Also the unit of the linear retry backoff.
        proxy_url: Proxy every request is routed through (None = direct)
        max_attempts: Attempts per page before giving up
        timeout: Per-request timeout in seconds
        smiley_replacer: Text substituted for every smiley image in post bodies

    Example:
        config = WebConfig(request_delay_ms=1500, proxy_url="http://127.0.0.1:8080")
    """
    request_delay_ms: int = DEFAULT_REQUEST_DELAY_MS
    proxy_url: Optional[str] = None
    max_attempts: int = MAX_ATTEMPTS
    timeout: float = REQUEST_TIMEOUT
    smiley_replacer: str = DEFAULT_SMILEY_REPLACER

    @property
    def request_delay(self) -> float:
        """The request delay in seconds, as expected by ``asyncio.sleep``."""
        return max(self.request_delay_ms, 0) / 1000.0
