"""
HTTP access to the forum.

``RateLimitedFetcher`` performs exactly one GET per ``fetch()`` call and turns
every transport-level problem into ``TransientNetworkError``. It never sleeps:
the minimum delay between requests is applied by the callers (between pages and
between retry attempts), configured through ``WebConfig.request_delay_ms``.
"""

import logging
from typing import Optional, Protocol

import httpx

from .config import USER_AGENT, WebConfig
from .errors import TransientNetworkError

logger = logging.getLogger(__name__)


class PageFetcher(Protocol):
    """Anything that can turn a URL into page text."""

    async def fetch(self, url: str) -> str:
        ...


class RateLimitedFetcher:
    """
    Async page fetcher backed by ``httpx.AsyncClient``.

    The client is created on first use (or on ``__aenter__``) unless one is
    passed in; an injected client is never closed by the fetcher.

    Usage:
        async with RateLimitedFetcher(WebConfig(proxy_url="http://proxy:3128")) as fetcher:
            html = await fetcher.fetch("https://bitcointalk.org/index.php?board=1.0")
    """

    def __init__(self, config: Optional[WebConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or WebConfig()
        self.client = client
        self._own_client = client is None

    async def __aenter__(self):
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = httpx.AsyncClient(
                proxy=self.config.proxy_url,
                timeout=self.config.timeout,
                follow_redirects=True,
                headers={
                    'User-Agent': USER_AGENT,
                    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
                    'Accept-Language': 'en-US,en;q=0.9',
                },
            )
        return self.client

    async def aclose(self) -> None:
        if self._own_client and self.client is not None:
            await self.client.aclose()
            self.client = None

    async def fetch(self, url: str) -> str:
        """
        Fetch a page and return its decoded text.

        Raises:
            TransientNetworkError: on timeouts, connection and proxy errors, and
                non-2xx responses.
        """
        client = self._ensure_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.debug("Request error for %s: %s", url, e)
            raise TransientNetworkError(url, str(e) or type(e).__name__) from e
        return response.text
