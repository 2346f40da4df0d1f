"""
Data models for the Bitcointalk miner.

This module defines the containers (``Board``, ``Topic``) and the records
(``Post``) extracted from forum pages. Containers are identified by the numeric
ID in their link; posts by their direct link or, while partial, by their
position or by author and creation time within a topic (see ``identity``).

Posts never reference their Topic object: they keep the topic ID string only.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Dict, List, Optional

from . import urls
from .config import TOPIC_PAGE_SIZE
from .errors import InvalidInputError
from .identity import identity_hash, same_post

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Post:
    """
    A single forum post, complete or partial.

    Attributes:
        topic_id: ID of the topic the post belongs to
        msg_id: ID of the message (None until known)
        message: Post body, stripped of quotes, code blocks, links and smileys
        author_name: Username of the post author
        author_link: Link to the author's profile
        title: Subject line of the post
        position: Number of the post within its topic (1 = first, 0 = unknown)
        date: Creation time (forum time, naive)

    Example:
        post = Post.at_position("https://bitcointalk.org/index.php?topic=5.0", 41)
        await resolver.complete(post)
        post.link  # "https://bitcointalk.org/index.php?topic=5.msg1234#msg1234"
    """
    topic_id: str
    msg_id: Optional[str] = None
    message: Optional[str] = None
    author_name: Optional[str] = None
    author_link: Optional[str] = None
    title: Optional[str] = None
    position: int = 0
    date: Optional[datetime] = None

    def __post_init__(self):
        if not str(self.topic_id).isdigit():
            raise InvalidInputError("topic ID must be numeric", "post")
        if self.msg_id is not None and not str(self.msg_id).isdigit():
            raise InvalidInputError("message ID must be numeric", "post")
        if self.position < 0:
            raise InvalidInputError("position can't be negative", "post")

    @classmethod
    def from_link(cls, link: str) -> "Post":
        """A partial post known by its direct link."""
        topic_id, msg_id = urls.parse_post_link(link)
        return cls(topic_id=topic_id, msg_id=msg_id)

    @classmethod
    def at_position(cls, topic_link: str, position: int) -> "Post":
        """A partial post known by its topic and its number within the topic."""
        if position < 1:
            raise InvalidInputError("position must be at least 1", "post")
        return cls(topic_id=urls.topic_id_from_any(topic_link), position=position)

    @classmethod
    def by_author(cls, topic_link: str, author_link: str, date: datetime) -> "Post":
        """A partial post known by its topic, its author and its creation time."""
        if not author_link or date is None:
            raise InvalidInputError("author link and date are required", "post")
        return cls(topic_id=urls.topic_id_from_any(topic_link), author_link=author_link, date=date)

    @property
    def link(self) -> Optional[str]:
        if self.msg_id is None:
            return None
        return urls.post_link(self.topic_id, self.msg_id)

    @property
    def topic_link_unfinished(self) -> Optional[str]:
        """Link of the topic without page offset, e.g. ``...?topic=5``."""
        return urls.topic_link_unfinished(self.topic_id)

    @property
    def is_complete(self) -> bool:
        return (
            self.msg_id is not None
            and self.message is not None
            and self.author_name is not None
            and self.author_link is not None
            and self.title is not None
            and self.position > 0
            and self.date is not None
        )

    def absorb(self, other: "Post") -> bool:
        """
        Copy every field known by ``other`` into this post.

        Values are final once the body is known: a post that already has a
        message is left untouched.

        Returns:
            True if the post was updated
        """
        if self.message is not None:
            return False
        if other.topic_id != self.topic_id:
            raise ValueError("Can't merge posts from different topics")
        if self.msg_id is None:
            self.msg_id = other.msg_id
        self.message = other.message
        self.author_name = other.author_name
        self.author_link = other.author_link if other.author_link is not None else self.author_link
        self.title = other.title
        if other.position:
            self.position = other.position
        if other.date is not None:
            self.date = other.date
        return True

    def to_dict(self) -> dict:
        """Convert the post to a dictionary for JSON serialization."""
        d = asdict(self)
        d["link"] = self.link
        d["date"] = self.date.isoformat() if self.date else None
        return d

    def __eq__(self, other):
        if not isinstance(other, Post):
            return NotImplemented
        return same_post(self, other)

    def __hash__(self):
        return identity_hash(self)


class Board:
    """A forum board, identified by the numeric ID in its link."""

    def __init__(self, link: str):
        self._board_id = urls.parse_board_link(link)

    @property
    def board_id(self) -> str:
        return self._board_id

    @property
    def link(self) -> str:
        """Link to the board's first page."""
        return urls.board_link(self._board_id)

    def page_url(self, page: int) -> str:
        return urls.board_page_url(self._board_id, page)

    def to_dict(self) -> dict:
        return {"board_id": self.board_id, "link": self.link}

    def __eq__(self, other):
        if not isinstance(other, Board):
            return NotImplemented
        return self.link == other.link

    def __hash__(self):
        return hash(self.link)

    def __repr__(self) -> str:
        return f"Board({self.link!r})"


class Topic:
    """
    A forum topic (thread) together with its cache of fetched pages.

    The page count is resolved lazily: ``max_pages`` is None until it is known,
    either from the board page the topic was found on or from
    ``PaginationWalker.resolve_page_count()``.

    The cache maps page numbers (starting with 1) to fixed arrays of 20 slots,
    a post occupying slot ``position % 20``. Only scans over this Topic
    instance touch its cache; callers must not scan the same instance
    concurrently.
    """

    def __init__(self, link: str, can_use_all: bool = False, max_pages: Optional[int] = None):
        self._topic_id = urls.parse_topic_link(link)
        self.can_use_all = can_use_all
        self.has_all_posts = False
        self._max_pages: Optional[int] = None
        self._pages: Dict[int, List[Optional[Post]]] = {}
        if max_pages is not None:
            self.set_max_pages(max_pages)

    @property
    def topic_id(self) -> str:
        return self._topic_id

    @property
    def link(self) -> str:
        """Link to the topic's first page."""
        return urls.topic_link(self._topic_id)

    @property
    def link_unfinished(self) -> str:
        return urls.topic_link_unfinished(self._topic_id)

    @property
    def resolved(self) -> bool:
        return self._max_pages is not None

    @property
    def max_pages(self) -> Optional[int]:
        return self._max_pages

    def set_max_pages(self, value) -> None:
        """Record the page count; missing or invalid values count as one page."""
        try:
            pages = int(value)
        except (TypeError, ValueError):
            pages = 1
        self._max_pages = pages if pages >= 1 else 1

    def page_url(self, page: int) -> str:
        return urls.topic_page_url(self._topic_id, page)

    # -------------------------------------------------------
    # PAGE CACHE
    # -------------------------------------------------------

    def is_cached(self, page: int) -> bool:
        return page in self._pages

    @property
    def cached_pages(self) -> List[int]:
        return sorted(self._pages)

    def cached_posts(self, page: int) -> List[Post]:
        return [post for post in self._pages.get(page, ()) if post is not None]

    def store_page(self, page: int, posts) -> None:
        """Cache the posts parsed from ``page``, replacing what was cached before."""
        slots: List[Optional[Post]] = [None] * TOPIC_PAGE_SIZE
        for post in posts:
            if post.position <= 0:
                logger.debug("Not caching post without position in topic %s", self._topic_id)
                continue
            slots[post.position % TOPIC_PAGE_SIZE] = post
        self._pages[page] = slots

    def store_by_position(self, posts) -> None:
        """Bucket posts from a whole-topic fetch into their pages."""
        for post in posts:
            if post.position <= 0:
                continue
            page = urls.page_for_position(post.position)
            slots = self._pages.setdefault(page, [None] * TOPIC_PAGE_SIZE)
            slots[post.position % TOPIC_PAGE_SIZE] = post

    def all_cached_posts(self) -> List[Post]:
        return [post for page in self.cached_pages for post in self.cached_posts(page)]

    def clear_cache(self) -> None:
        self._pages.clear()
        self.has_all_posts = False

    def to_dict(self) -> dict:
        return {
            "topic_id": self.topic_id,
            "link": self.link,
            "max_pages": self.max_pages,
            "can_use_all": self.can_use_all,
        }

    def __eq__(self, other):
        if not isinstance(other, Topic):
            return NotImplemented
        return self.link == other.link

    def __hash__(self):
        return hash(self.link)

    def __repr__(self) -> str:
        return f"Topic({self.link!r}, max_pages={self.max_pages})"
