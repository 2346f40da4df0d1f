"""
High-level entry point for reading the forum.

``BitcointalkClient`` wires a fetcher, a walker and an enrichment resolver
together behind one object and accepts plain links wherever a board, topic or
post is expected.
"""

import logging
from datetime import datetime
from typing import Optional, Set, Union

from .config import WebConfig
from .enrichment import EnrichmentResolver
from .errors import CancelToken
from .events import NotificationSink
from .extractor import ContentExtractor
from .fetcher import PageFetcher, RateLimitedFetcher
from .identity import PostSet
from .models import Board, Post, Topic
from .walker import PaginationWalker

logger = logging.getLogger(__name__)


class BitcointalkClient:
    """
    Async client for Bitcointalk boards, topics and posts.

    Usage:
        async with BitcointalkClient(WebConfig(request_delay_ms=1500)) as client:
            topics = await client.get_topics("https://bitcointalk.org/index.php?board=1.0", page_count=2)
            for topic in topics:
                posts = await client.get_posts(topic, page_count=topic.max_pages)
    """

    def __init__(
        self,
        config: Optional[WebConfig] = None,
        fetcher: Optional[PageFetcher] = None,
        sink: Optional[NotificationSink] = None,
    ):
        self.config = config or WebConfig()
        self._own_fetcher = fetcher is None
        self.fetcher = fetcher if fetcher is not None else RateLimitedFetcher(self.config)
        self.walker = PaginationWalker(
            self.fetcher,
            self.config,
            ContentExtractor(self.config.smiley_replacer),
            sink,
        )
        self.resolver = EnrichmentResolver(self.walker)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._own_fetcher:
            await self.fetcher.aclose()

    async def get_topics(
        self,
        board: Union[str, Board],
        start_page: int = 1,
        page_count: int = 1,
        cancel: Optional[CancelToken] = None,
    ) -> Set[Topic]:
        if isinstance(board, str):
            board = Board(board)
        return await self.walker.scan_board(board, start_page, page_count, cancel)

    async def get_posts(
        self,
        topic: Union[str, Topic],
        start_page: int = 1,
        page_count: int = 1,
        cancel: Optional[CancelToken] = None,
    ) -> PostSet:
        """Posts of a range of topic pages; pass a Topic object to reuse its cache."""
        if isinstance(topic, str):
            topic = Topic(topic)
        return await self.walker.scan_topic(topic, start_page, page_count, cancel)

    async def get_all_posts(
        self,
        topic: Union[str, Topic],
        full_details: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> PostSet:
        """
        Every post of a topic.

        Without ``full_details`` topics that don't support the ``;all`` page
        are read from their print view, which only yields position and body.
        """
        if isinstance(topic, str):
            topic = Topic(topic)
        return await self.walker.scan_all(topic, full_details, cancel)

    async def get_post(self, link: str, cancel: Optional[CancelToken] = None) -> Post:
        return await self.resolver.complete(Post.from_link(link), cancel=cancel)

    async def get_post_at(
        self,
        topic_link: str,
        position: int,
        cancel: Optional[CancelToken] = None,
    ) -> Post:
        return await self.resolver.complete(Post.at_position(topic_link, position), cancel=cancel)

    async def get_post_by_author(
        self,
        topic: Union[str, Topic],
        author_link: str,
        date: datetime,
        cancel: Optional[CancelToken] = None,
    ) -> Post:
        """Find a post by its author's profile link and its exact creation time."""
        topic_obj = topic if isinstance(topic, Topic) else None
        topic_link = topic.link if isinstance(topic, Topic) else topic
        post = Post.by_author(topic_link, author_link, date)
        return await self.resolver.complete(post, topic=topic_obj, cancel=cancel)

    async def get_recent_posts(self, pages: int = 1, cancel: Optional[CancelToken] = None) -> PostSet:
        return await self.walker.scan_recent(pages, cancel)
