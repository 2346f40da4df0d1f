"""
Page-by-page traversal of boards, topics and the recent posts list.

``PaginationWalker`` is the engine shared by every scan. For each requested
page it fetches through the retry policy, parses with the ``ContentExtractor``,
merges the records into a set (and, for topics, into the page cache), waits the
configured request delay and reports progress to the notification sink.

Pages are visited strictly one after the other in increasing order; there is no
fan-out across pages, so the request delay is respected even on retries.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set, TypeVar, Union

from . import urls
from .config import MAX_RECENT_PAGES, WebConfig
from .errors import CancelToken, check_cancelled
from .events import LoggingSink, NotificationSink, PageProcessed
from .extractor import ContentExtractor
from .fetcher import PageFetcher
from .identity import PostSet
from .models import Board, Post, Topic
from .retry import with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PaginationWalker:
    """
    Drives the page loop over a board or a topic.

    Args:
        fetcher: Anything with ``async fetch(url) -> str``
        config: Request delay, attempt limit and smiley replacement
        extractor: Page parser (built from ``config`` when omitted)
        sink: Default notification sink (logs when omitted); every scan method
            also accepts its own sink
        sleep: Awaitable sleep, replaceable for testing

    Usage:
        async with RateLimitedFetcher(config) as fetcher:
            walker = PaginationWalker(fetcher, config)
            topic = Topic("https://bitcointalk.org/index.php?topic=5.0")
            posts = await walker.scan(topic, start_page=1, page_count=3)
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        config: Optional[WebConfig] = None,
        extractor: Optional[ContentExtractor] = None,
        sink: Optional[NotificationSink] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.config = config or WebConfig()
        self.extractor = extractor or ContentExtractor(self.config.smiley_replacer)
        self.sink = sink if sink is not None else LoggingSink()
        self._sleep = sleep

    async def scan(
        self,
        container: Union[Board, Topic],
        start_page: int = 1,
        page_count: int = 1,
        cancel: Optional[CancelToken] = None,
        sink: Optional[NotificationSink] = None,
    ) -> Union[Set[Topic], PostSet]:
        """Scan ``page_count`` pages of a board or topic, starting at ``start_page``."""
        if isinstance(container, Board):
            return await self.scan_board(container, start_page, page_count, cancel, sink)
        if isinstance(container, Topic):
            return await self.scan_topic(container, start_page, page_count, cancel, sink)
        raise TypeError(f"Can't scan {type(container).__name__}")

    # -------------------------------------------------------
    # BOARDS
    # -------------------------------------------------------

    async def scan_board(
        self,
        board: Board,
        start_page: int = 1,
        page_count: int = 1,
        cancel: Optional[CancelToken] = None,
        sink: Optional[NotificationSink] = None,
    ) -> Set[Topic]:
        """
        Collect the topics listed on a range of board pages.

        Board pages are never cached: every call fetches them again. A topic
        listed on several pages appears once in the result.
        """
        sink = self._sink(sink)
        start_page = max(start_page, 1)
        page_count = max(page_count, 0)

        topics: Set[Topic] = set()
        for done, page in enumerate(range(start_page, start_page + page_count), start=1):
            url = board.page_url(page)
            found = await self._load(
                url,
                lambda html, url=url: self.extractor.parse_board_page(html, sink, url),
                f"board page #{page}",
                cancel,
                sink,
            )
            topics.update(found)
            await self._sleep(self.config.request_delay)
            sink(PageProcessed(page, done / page_count, tuple(found), board.link))
            check_cancelled(cancel)

        logger.info("Found %d topics on %d pages of %s", len(topics), page_count, board.link)
        return topics

    # -------------------------------------------------------
    # TOPICS
    # -------------------------------------------------------

    async def resolve_page_count(
        self,
        topic: Topic,
        cancel: Optional[CancelToken] = None,
        sink: Optional[NotificationSink] = None,
    ) -> int:
        """
        Make sure ``topic.max_pages`` is known and return it.

        Reads the highest page link of page 1. The posts of page 1 are cached
        on the way, so a following scan does not fetch that page again. A
        topic whose every post is cached takes its count from the cache.
        """
        if topic.resolved:
            return topic.max_pages
        if topic.has_all_posts and topic.cached_pages:
            topic.set_max_pages(topic.cached_pages[-1])
            return topic.max_pages

        sink = self._sink(sink)
        url = topic.page_url(1)

        def parse(html: str):
            return self.extractor.parse_max_pages(html), self.extractor.parse_topic_page(html, sink, url)

        max_pages, posts = await self._load(url, parse, "topic page count", cancel, sink)
        topic.set_max_pages(max_pages)
        if not topic.is_cached(1):
            topic.store_page(1, posts)
        await self._sleep(self.config.request_delay)

        logger.debug("Topic %s has %d pages", topic.topic_id, topic.max_pages)
        return topic.max_pages

    async def scan_topic(
        self,
        topic: Topic,
        start_page: int = 1,
        page_count: int = 1,
        cancel: Optional[CancelToken] = None,
        sink: Optional[NotificationSink] = None,
    ) -> PostSet:
        """
        Collect the posts of a range of topic pages.

        The range is clamped to the topic's page count (resolved first when
        unknown). Cached pages are reused without a request; fetched pages are
        cached on the topic.

        Raises:
            ConnectivityExhaustedError: a page could not be fetched
            StructuralMismatchError: a page did not look like a topic page
            ScanCancelled: ``cancel`` was set; pages completed so far stay cached
        """
        sink = self._sink(sink)
        start_page = max(start_page, 1)
        max_pages = await self.resolve_page_count(topic, cancel, sink)
        page_count = max(min(page_count, max_pages - start_page + 1), 0)

        posts = PostSet()
        for done, page in enumerate(range(start_page, start_page + page_count), start=1):
            if topic.is_cached(page):
                found = topic.cached_posts(page)
            else:
                url = topic.page_url(page)
                found = await self._load(
                    url,
                    lambda html, url=url: self.extractor.parse_topic_page(html, sink, url),
                    f"topic page #{page}",
                    cancel,
                    sink,
                )
                topic.store_page(page, found)
                await self._sleep(self.config.request_delay)
            posts.update(found)
            sink(PageProcessed(page, done / page_count, tuple(found), topic.link))
            check_cancelled(cancel)

        return posts

    async def scan_all(
        self,
        topic: Topic,
        full_details: bool = False,
        cancel: Optional[CancelToken] = None,
        sink: Optional[NotificationSink] = None,
    ) -> PostSet:
        """
        Collect every post of a topic with as few requests as possible.

        In order of preference:
        1. the cache, when a previous whole-topic scan filled it;
        2. the single ``;all`` page, when the topic supports it (cached);
        3. with ``full_details``, every topic page one by one (cached);
        4. the print view, which yields reduced posts only (not cached).
        """
        sink = self._sink(sink)
        if topic.has_all_posts:
            return PostSet(topic.all_cached_posts())

        if topic.can_use_all:
            url = urls.all_posts_url(topic.topic_id)
            posts = await self._load(
                url,
                lambda html: self.extractor.parse_topic_page(html, sink, url),
                "whole topic",
                cancel,
                sink,
            )
            topic.store_by_position(posts)
            topic.has_all_posts = True
            await self._sleep(self.config.request_delay)
            sink(PageProcessed(1, 1.0, tuple(posts), topic.link))
            return PostSet(posts)

        if full_details:
            max_pages = await self.resolve_page_count(topic, cancel, sink)
            posts = await self.scan_topic(topic, 1, max_pages, cancel, sink)
            topic.has_all_posts = True
            return posts

        url = urls.print_page_url(topic.topic_id)
        posts = await self._load(
            url,
            lambda html: self.extractor.parse_print_page(html, sink, url),
            "topic print page",
            cancel,
            sink,
        )
        await self._sleep(self.config.request_delay)
        sink(PageProcessed(1, 1.0, tuple(posts), topic.link))
        return PostSet(posts)

    async def fetch_posts(
        self,
        url: str,
        label: str = "post page",
        cancel: Optional[CancelToken] = None,
        sink: Optional[NotificationSink] = None,
    ) -> PostSet:
        """Fetch one topic page by URL (e.g. a post link) and return its posts."""
        sink = self._sink(sink)
        posts = await self._load(
            url,
            lambda html: self.extractor.parse_topic_page(html, sink, url),
            label,
            cancel,
            sink,
        )
        await self._sleep(self.config.request_delay)
        return posts

    # -------------------------------------------------------
    # RECENT POSTS
    # -------------------------------------------------------

    async def scan_recent(
        self,
        pages: int = 1,
        cancel: Optional[CancelToken] = None,
        sink: Optional[NotificationSink] = None,
    ) -> PostSet:
        """Collect the posts of the first ``pages`` "recent posts" pages (at most 10)."""
        sink = self._sink(sink)
        pages = min(pages, MAX_RECENT_PAGES)
        if pages < 1:
            return PostSet()

        posts = PostSet()
        for index in range(pages):
            url = urls.recent_page_url(index)
            found = await self._load(
                url,
                lambda html, url=url: self.extractor.parse_recent_page(html, sink, url),
                f"recent posts page #{index + 1}",
                cancel,
                sink,
            )
            posts.update(found)
            await self._sleep(self.config.request_delay)
            sink(PageProcessed(index + 1, (index + 1) / pages, tuple(found), "recent posts"))
            check_cancelled(cancel)

        return posts

    # -------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------

    def _sink(self, sink: Optional[NotificationSink]) -> NotificationSink:
        return sink if sink is not None else self.sink

    async def _load(
        self,
        url: str,
        parse: Callable[[str], T],
        label: str,
        cancel: Optional[CancelToken],
        sink: NotificationSink,
    ) -> T:
        """Fetch ``url`` and parse it as one retryable unit."""

        async def attempt() -> T:
            html = await self.fetcher.fetch(url)
            return parse(html)

        return await with_retry(
            attempt,
            self.config.max_attempts,
            self.config.request_delay,
            cancel=cancel,
            sink=sink,
            label=label,
            sleep=self._sleep,
        )
