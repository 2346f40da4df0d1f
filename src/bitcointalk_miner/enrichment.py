"""
Completion of partial posts.

A partial post is completed by fetching just enough of the forum to find it
again. The way to find it depends on what is already known:

- ``ByLink``: the direct link; the page behind the link holds the post
- ``ByPosition``: topic and position; one topic page holds the post
- ``ByAuthorTime``: topic, author and creation time; the whole topic is searched
- ``Unresolvable``: nothing to go on, or the post is already complete

The strategy is chosen once, up front, by ``select_strategy()``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Union

from . import urls
from .errors import CancelToken, EnrichmentImpossibleError
from .events import NotificationSink
from .models import Post, Topic
from .walker import PaginationWalker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ByLink:
    link: str


@dataclass(frozen=True)
class ByPosition:
    topic_id: str
    position: int

    @property
    def page_url(self) -> str:
        """The topic page holding the post, e.g. offset 40 for position 41."""
        return urls.topic_offset_url(self.topic_id, urls.offset_for_position(self.position))


@dataclass(frozen=True)
class ByAuthorTime:
    topic_id: str
    author_link: str
    date: datetime


@dataclass(frozen=True)
class Unresolvable:
    reason: str


Strategy = Union[ByLink, ByPosition, ByAuthorTime, Unresolvable]


def select_strategy(post: Post) -> Strategy:
    """Pick how ``post`` can be completed, from the fields it already has."""
    if post.message is not None:
        return Unresolvable("post body is already known")
    if post.link is not None:
        return ByLink(post.link)
    if post.position:
        return ByPosition(post.topic_id, post.position)
    if post.author_link is not None and post.date is not None:
        return ByAuthorTime(post.topic_id, post.author_link, post.date)
    return Unresolvable("post has neither link, position nor author and date")


class EnrichmentResolver:
    """
    Completes partial posts through a ``PaginationWalker``.

    Usage:
        resolver = EnrichmentResolver(walker)
        post = await resolver.complete(Post.at_position(topic_link, 41))
    """

    def __init__(self, walker: PaginationWalker):
        self.walker = walker

    async def complete(
        self,
        post: Post,
        topic: Optional[Topic] = None,
        cancel: Optional[CancelToken] = None,
        sink: Optional[NotificationSink] = None,
    ) -> Post:
        """
        Fill in every field of ``post`` from freshly fetched pages.

        Args:
            post: The partial post; it is updated in place
            topic: The post's topic, if the caller holds it. Its page cache and
                bulk-fetch support are used by the author/time search.
            cancel: Token checked between attempts and pages
            sink: Notification sink for the fetches

        Returns:
            The same post. A post found by link may stay partial when its page
            no longer lists it; check ``post.is_complete``.

        Raises:
            EnrichmentImpossibleError: the post was not found by position or by
                author and time
        """
        strategy = select_strategy(post)

        if isinstance(strategy, ByLink):
            found = await self.walker.fetch_posts(strategy.link, "post page", cancel, sink)
            match = _first(found, lambda candidate: candidate == post)
            if match is None:
                logger.warning("Post %s not found on its own page", strategy.link)
            else:
                post.absorb(match)

        elif isinstance(strategy, ByPosition):
            found = await self.walker.fetch_posts(strategy.page_url, f"page of post #{strategy.position}", cancel, sink)
            match = _first(found, lambda candidate: candidate.position == strategy.position)
            if match is None:
                raise EnrichmentImpossibleError(
                    f"No post #{strategy.position} in topic {strategy.topic_id}"
                )
            post.absorb(match)

        elif isinstance(strategy, ByAuthorTime):
            if topic is None or topic.topic_id != strategy.topic_id:
                topic = Topic(urls.topic_link(strategy.topic_id))
            found = await self.walker.scan_all(topic, full_details=True, cancel=cancel, sink=sink)
            match = _first(
                found,
                lambda candidate: candidate.author_link == strategy.author_link and candidate.date == strategy.date,
            )
            if match is None:
                raise EnrichmentImpossibleError(
                    f"No post by {strategy.author_link} at {strategy.date} in topic {strategy.topic_id}"
                )
            post.absorb(match)

        else:
            logger.debug("Nothing to enrich: %s", strategy.reason)

        return post


def _first(posts: Iterable[Post], predicate) -> Optional[Post]:
    for candidate in posts:
        if predicate(candidate):
            return candidate
    return None
