"""
Bitcointalk Miner - Incremental Forum Scraper Package

This package extracts boards, topics and posts from the Bitcointalk forum,
retrying failed requests, caching topic pages and completing partially known
posts on demand.

Main components:
- BitcointalkClient: High-level async entry point
- PaginationWalker: Page loop with retry, caching, progress and cancellation
- ContentExtractor: HTML to record extraction
- EnrichmentResolver: Completion of partial posts
- Board, Topic, Post: Data models

Usage:
    from bitcointalk_miner import BitcointalkClient, WebConfig
    import asyncio

    async def main():
        async with BitcointalkClient(WebConfig(request_delay_ms=2000)) as client:
            return await client.get_posts("https://bitcointalk.org/index.php?topic=5.0")

    posts = asyncio.run(main())
"""

from .client import BitcointalkClient
from .config import WebConfig
from .enrichment import EnrichmentResolver, select_strategy
from .errors import (
    BitcointalkError,
    CancelToken,
    ConnectivityExhaustedError,
    EnrichmentImpossibleError,
    InvalidInputError,
    PostParseError,
    ScanCancelled,
    StructuralMismatchError,
    TransientNetworkError,
)
from .events import FetchAttempt, LoggingSink, PageProcessed, ScanFailure, ScanStats, fan_out
from .extractor import ContentExtractor
from .fetcher import RateLimitedFetcher
from .identity import PostSet
from .models import Board, Post, Topic
from .walker import PaginationWalker

__all__ = [
    'BitcointalkClient',
    'WebConfig',
    'PaginationWalker',
    'ContentExtractor',
    'EnrichmentResolver',
    'select_strategy',
    'RateLimitedFetcher',
    'Board',
    'Topic',
    'Post',
    'PostSet',
    'CancelToken',
    'PageProcessed',
    'ScanFailure',
    'FetchAttempt',
    'LoggingSink',
    'ScanStats',
    'fan_out',
    'BitcointalkError',
    'InvalidInputError',
    'TransientNetworkError',
    'ConnectivityExhaustedError',
    'StructuralMismatchError',
    'PostParseError',
    'EnrichmentImpossibleError',
    'ScanCancelled',
]

__version__ = '1.0.0'
