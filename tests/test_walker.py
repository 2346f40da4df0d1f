"""Tests for the pagination walker using an in-memory fetcher."""

import time

import pytest

from bitcointalk_miner import urls
from bitcointalk_miner.config import WebConfig
from bitcointalk_miner.errors import (
    CancelToken,
    ConnectivityExhaustedError,
    ScanCancelled,
    StructuralMismatchError,
    TransientNetworkError,
)
from bitcointalk_miner.events import PageProcessed
from bitcointalk_miner.identity import PostSet
from bitcointalk_miner.models import Board, Post, Topic
from bitcointalk_miner.walker import PaginationWalker

from forum_pages import (
    FakeFetcher,
    board_page,
    board_row,
    no_sleep,
    page_rows,
    print_page,
    recent_block,
    recent_page,
    simple_topic_page,
    topic_page,
)

TOPIC = "https://bitcointalk.org/index.php?topic=5.0"
BOARD = "https://bitcointalk.org/index.php?board=1.0"


def topic_pages(count: int, last_page_posts: int = 20):
    return {
        urls.topic_page_url("5", page): simple_topic_page(
            "5", page, count=last_page_posts if page == count else 20, max_pages=count
        )
        for page in range(1, count + 1)
    }


def make_walker(fetcher, events=None, delay_ms=0, sleep=no_sleep):
    sink = events.append if events is not None else (lambda event: None)
    return PaginationWalker(fetcher, WebConfig(request_delay_ms=delay_ms), sink=sink, sleep=sleep)


def page_events(events):
    return [e for e in events if isinstance(e, PageProcessed)]


class GeneratedTopic:
    """Extractor stand-in serving 20 numbered posts per page of a long topic."""

    def __init__(self, pages: int):
        self.pages = pages

    def parse_max_pages(self, html):
        return self.pages

    def parse_topic_page(self, html, sink=None, source=None):
        offset = urls.trailing_offset(source)
        return [
            Post(topic_id="5", msg_id=str(offset + i), message="body", position=offset + i)
            for i in range(1, 21)
        ]


@pytest.mark.asyncio
class TestScanTopic:
    async def test_scans_requested_pages(self):
        fetcher = FakeFetcher(topic_pages(3))
        posts = await make_walker(fetcher).scan(Topic(TOPIC), 1, 2)
        assert sorted(p.position for p in posts) == list(range(1, 41))

    async def test_page_count_resolved_without_refetch(self):
        fetcher = FakeFetcher(topic_pages(3))
        topic = Topic(TOPIC)
        await make_walker(fetcher).scan_topic(topic, 1, 3)

        assert topic.max_pages == 3
        for url in topic_pages(3):
            assert fetcher.count(url) == 1

    async def test_cached_pages_never_refetched(self):
        fetcher = FakeFetcher(topic_pages(4))
        topic = Topic(TOPIC)
        walker = make_walker(fetcher)

        await walker.scan_topic(topic, 1, 2)
        await walker.scan_topic(topic, 2, 2)
        posts = await walker.scan_topic(topic, 1, 4)

        assert sorted(p.position for p in posts) == list(range(1, 81))
        assert len(fetcher.calls) == 4
        assert len(set(fetcher.calls)) == 4

    async def test_separate_topic_instances_have_separate_caches(self):
        fetcher = FakeFetcher(topic_pages(1))
        walker = make_walker(fetcher)
        await walker.scan_topic(Topic(TOPIC), 1, 1)
        await walker.scan_topic(Topic(TOPIC), 1, 1)
        assert fetcher.count(TOPIC) == 2

    async def test_page_count_clamped_to_topic(self):
        fetcher = FakeFetcher(topic_pages(2, last_page_posts=5))
        events = []
        posts = await make_walker(fetcher, events).scan_topic(Topic(TOPIC), 2, 10)

        assert sorted(p.position for p in posts) == list(range(21, 26))
        assert [e.page for e in page_events(events)] == [2]

    async def test_start_page_clamped_to_one(self):
        fetcher = FakeFetcher(topic_pages(2))
        events = []
        await make_walker(fetcher, events).scan_topic(Topic(TOPIC), -3, 1)
        assert [e.page for e in page_events(events)] == [1]

    async def test_start_beyond_last_page_scans_nothing(self):
        fetcher = FakeFetcher(topic_pages(2))
        events = []
        posts = await make_walker(fetcher, events).scan_topic(Topic(TOPIC), 5, 3)
        assert posts == set()
        assert page_events(events) == []

    async def test_progress_is_monotonic(self):
        fetcher = FakeFetcher(topic_pages(4))
        events = []
        await make_walker(fetcher, events).scan_topic(Topic(TOPIC), 1, 4)

        progress = [e.progress for e in page_events(events)]
        assert progress == [0.25, 0.5, 0.75, 1.0]
        assert [e.page for e in page_events(events)] == [1, 2, 3, 4]
        assert all(len(e.records) == 20 for e in page_events(events))

    async def test_cancellation_keeps_completed_pages(self):
        fetcher = FakeFetcher(topic_pages(3))
        token = CancelToken()
        topic = Topic(TOPIC)

        def sink(event):
            if isinstance(event, PageProcessed) and event.page == 2:
                token.cancel()

        walker = PaginationWalker(fetcher, WebConfig(request_delay_ms=0), sink=sink, sleep=no_sleep)
        with pytest.raises(ScanCancelled):
            await walker.scan_topic(topic, 1, 3, cancel=token)

        assert topic.cached_pages == [1, 2]
        assert fetcher.count(urls.topic_page_url("5", 3)) == 0

    async def test_request_delay_between_pages(self):
        delays = []

        async def sleep(seconds):
            delays.append(seconds)

        fetcher = FakeFetcher(topic_pages(2))
        await make_walker(fetcher, delay_ms=1500, sleep=sleep).scan_topic(Topic(TOPIC), 1, 2)
        # page count resolution (page 1), then page 2; page 1 comes from the cache
        assert delays == [1.5, 1.5]

    async def test_long_topic_scans_in_linear_time(self):
        pages = 500
        fetcher = FakeFetcher({urls.topic_page_url("5", page): "" for page in range(1, pages + 1)})
        walker = PaginationWalker(
            fetcher, WebConfig(request_delay_ms=0), extractor=GeneratedTopic(pages),
            sink=lambda event: None, sleep=no_sleep,
        )

        started = time.perf_counter()
        posts = await walker.scan_topic(Topic(TOPIC), 1, pages)

        assert time.perf_counter() - started < 5
        assert isinstance(posts, PostSet)
        assert len(posts) == pages * 20

    async def test_transient_failure_retried(self):
        class FlakyFetcher(FakeFetcher):
            failed = False

            async def fetch(self, url):
                if not self.failed:
                    self.failed = True
                    self.calls.append(url)
                    raise TransientNetworkError(url, "timeout")
                return await super().fetch(url)

        fetcher = FlakyFetcher(topic_pages(1))
        events = []
        posts = await make_walker(fetcher, events).scan_topic(Topic(TOPIC), 1, 1)

        assert len(posts) == 20
        assert fetcher.count(TOPIC) == 2
        assert [e.succeeded for e in events if not isinstance(e, PageProcessed)] == [False, True]

    async def test_connectivity_exhausted(self):
        class DeadFetcher:
            async def fetch(self, url):
                raise TransientNetworkError(url, "connection refused")

        with pytest.raises(ConnectivityExhaustedError):
            await make_walker(DeadFetcher()).scan_topic(Topic(TOPIC), 1, 1)

    async def test_structural_mismatch_surfaces(self):
        fetcher = FakeFetcher({TOPIC: "<html><body>Down for maintenance</body></html>"})
        with pytest.raises(StructuralMismatchError):
            await make_walker(fetcher).scan_topic(Topic(TOPIC), 1, 1)
        assert fetcher.count(TOPIC) == 1


@pytest.mark.asyncio
class TestScanAll:
    async def test_bulk_page_fills_cache(self):
        rows = page_rows("5", 1) + page_rows("5", 2) + page_rows("5", 3, count=3)
        bulk = FakeFetcher({urls.all_posts_url("5"): topic_page(rows)})
        topic = Topic(TOPIC, can_use_all=True)
        walker = make_walker(bulk)

        posts = await walker.scan_all(topic)
        assert len(posts) == 43
        assert topic.has_all_posts
        assert topic.cached_pages == [1, 2, 3]

        again = await walker.scan_all(topic)
        assert len(again) == 43
        paged = await walker.scan_topic(topic, 1, 5)
        assert len(paged) == 43
        assert topic.max_pages == 3
        assert len(bulk.calls) == 1

    async def test_print_page_fallback(self):
        fetcher = FakeFetcher({urls.print_page_url("5"): print_page("5", ["a", "b", "c"])})
        topic = Topic(TOPIC)
        posts = await make_walker(fetcher).scan_all(topic)

        assert sorted((p.position, p.message) for p in posts) == [(1, "a"), (2, "b"), (3, "c")]
        assert topic.cached_pages == []
        assert not topic.has_all_posts

    async def test_full_details_walks_every_page(self):
        fetcher = FakeFetcher(topic_pages(3, last_page_posts=7))
        topic = Topic(TOPIC)
        walker = make_walker(fetcher)

        posts = await walker.scan_all(topic, full_details=True)
        assert len(posts) == 47
        assert all(p.is_complete for p in posts)
        assert topic.has_all_posts

        await walker.scan_all(topic, full_details=True)
        assert len(fetcher.calls) == 3


@pytest.mark.asyncio
class TestScanBoard:
    async def test_two_page_board_union(self):
        board = Board(BOARD)
        fetcher = FakeFetcher({
            board.page_url(1): board_page([board_row("10"), board_row("11", page_offsets=[0, 20])]),
            board.page_url(2): board_page([board_row("11", page_offsets=[0, 20]), board_row("12")]),
        })
        events = []
        topics = await make_walker(fetcher, events).scan(board, 1, 2)

        assert sorted(t.topic_id for t in topics) == ["10", "11", "12"]
        assert [e.progress for e in page_events(events)] == [0.5, 1.0]

    async def test_board_pages_not_cached(self):
        board = Board(BOARD)
        fetcher = FakeFetcher({board.page_url(1): board_page([board_row("10")])})
        walker = make_walker(fetcher)
        await walker.scan_board(board, 1, 1)
        await walker.scan_board(board, 1, 1)
        assert fetcher.count(board.page_url(1)) == 2

    async def test_zero_pages(self):
        fetcher = FakeFetcher({})
        assert await make_walker(fetcher).scan_board(Board(BOARD), 1, 0) == set()
        assert fetcher.calls == []

    async def test_unknown_container(self):
        with pytest.raises(TypeError):
            await make_walker(FakeFetcher({})).scan("not a container")


@pytest.mark.asyncio
class TestScanRecent:
    async def test_pages_collected(self):
        fetcher = FakeFetcher({
            urls.recent_page_url(0): recent_page([recent_block("5", "200", "a")]),
            urls.recent_page_url(1): recent_page([recent_block("6", "300", "b")]),
        })
        posts = await make_walker(fetcher).scan_recent(2)
        assert {p.msg_id for p in posts} == {"200", "300"}

    async def test_no_pages(self):
        fetcher = FakeFetcher({})
        assert await make_walker(fetcher).scan_recent(0) == set()
        assert fetcher.calls == []

    async def test_clamped_to_ten_pages(self):
        fetcher = FakeFetcher({
            urls.recent_page_url(i): recent_page([recent_block("5", str(100 + i), "x")])
            for i in range(10)
        })
        posts = await make_walker(fetcher).scan_recent(25)
        assert len(posts) == 10
        assert len(fetcher.calls) == 10
