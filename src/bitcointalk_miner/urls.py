"""
URL grammar of the forum.

Board:  https://bitcointalk.org/index.php?board=<id>.<offset>
Topic:  https://bitcointalk.org/index.php?topic=<id>.<offset>
Post:   https://bitcointalk.org/index.php?topic=<id>.msg<msg>#msg<msg>

Offsets are zero-based record counts: board pages step by 40, topic pages by 20.
"""

import re
from typing import Optional, Tuple

from .config import (
    ALL_POSTS_SUFFIX,
    BOARD_PAGE_SIZE,
    BOARD_PREFIX,
    LINK_SUFFIX,
    PRINT_PAGE_PREFIX,
    RECENT_PAGE_PREFIX,
    RECENT_PAGE_SIZE,
    TOPIC_PAGE_SIZE,
    TOPIC_PREFIX,
)
from .errors import InvalidInputError

BOARD_LINK_RE = re.compile(r'^https://bitcointalk\.org/index\.php\?board=(\d+)\.(\d+)$')
TOPIC_LINK_RE = re.compile(r'^https://bitcointalk\.org/index\.php\?topic=(\d+)\.(\d+)$')
POST_LINK_RE = re.compile(r'^https://bitcointalk\.org/index\.php\?topic=(\d+)\.msg(\d+)(?:#msg(\d+))?$')
TOPIC_UNFINISHED_RE = re.compile(r'^https://bitcointalk\.org/index\.php\?topic=(\d+)$')
TRAILING_NUMBER_RE = re.compile(r'(\d+)$')


def parse_board_link(link: str) -> str:
    """Return the board ID of a board link, e.g. ``"1"`` for ``...?board=1.40``."""
    match = BOARD_LINK_RE.match(link or "")
    if not match:
        raise InvalidInputError("link doesn't match board pattern", "board")
    return match.group(1)


def parse_topic_link(link: str) -> str:
    """Return the topic ID of a topic link (any page of the topic)."""
    match = TOPIC_LINK_RE.match(link or "")
    if not match:
        raise InvalidInputError("link doesn't match topic pattern", "topic")
    return match.group(1)


def parse_post_link(link: str) -> Tuple[str, str]:
    """Return ``(topic_id, msg_id)`` of a post link; the ``#msg`` anchor is optional."""
    match = POST_LINK_RE.match(link or "")
    if not match:
        raise InvalidInputError("link doesn't match any post pattern", "post")
    if match.group(3) is not None and match.group(3) != match.group(2):
        raise InvalidInputError("anchor doesn't match message ID", "post")
    return match.group(1), match.group(2)


def topic_id_from_any(link: str) -> str:
    """
    Extract the topic ID from any forum link of a topic.

    Accepts unfinished topic links (``...?topic=5``), topic page links and post
    links alike; anything else raises ``InvalidInputError``.
    """
    for pattern in (TOPIC_UNFINISHED_RE, TOPIC_LINK_RE):
        match = pattern.match(link or "")
        if match:
            return match.group(1)
    try:
        return parse_post_link(link)[0]
    except InvalidInputError:
        raise InvalidInputError("link doesn't match topic pattern", "topic") from None


def trailing_offset(link: str) -> Optional[int]:
    """Return the number a link ends with (its page offset), or None."""
    match = TRAILING_NUMBER_RE.search(link or "")
    return int(match.group(1)) if match else None


def board_link(board_id: str) -> str:
    return f"{BOARD_PREFIX}{board_id}{LINK_SUFFIX}"


def topic_link(topic_id: str) -> str:
    return f"{TOPIC_PREFIX}{topic_id}{LINK_SUFFIX}"


def topic_link_unfinished(topic_id: str) -> str:
    """The topic link without its page offset, e.g. ``...?topic=5``."""
    return f"{TOPIC_PREFIX}{topic_id}"


def post_link(topic_id: str, msg_id: str) -> str:
    return f"{TOPIC_PREFIX}{topic_id}.msg{msg_id}#msg{msg_id}"


def board_page_url(board_id: str, page: int) -> str:
    return f"{BOARD_PREFIX}{board_id}.{(page - 1) * BOARD_PAGE_SIZE}"


def topic_page_url(topic_id: str, page: int) -> str:
    return topic_offset_url(topic_id, (page - 1) * TOPIC_PAGE_SIZE)


def topic_offset_url(topic_id: str, offset: int) -> str:
    return f"{TOPIC_PREFIX}{topic_id}.{offset}"


def all_posts_url(topic_id: str) -> str:
    """The single page listing every post of a topic (only some topics allow it)."""
    return topic_link(topic_id) + ALL_POSTS_SUFFIX


def print_page_url(topic_id: str) -> str:
    return f"{PRINT_PAGE_PREFIX}{topic_id}{LINK_SUFFIX}"


def recent_page_url(index: int) -> str:
    """URL of the zero-based ``index``-th "recent posts" page."""
    return f"{RECENT_PAGE_PREFIX}{index * RECENT_PAGE_SIZE}"


def offset_for_position(position: int) -> int:
    """
    Offset of the topic page that holds the post at ``position`` (1-based).

    Examples:
        offset_for_position(1)  -> 0
        offset_for_position(20) -> 0
        offset_for_position(41) -> 40
    """
    if position % TOPIC_PAGE_SIZE == 0:
        return position - TOPIC_PAGE_SIZE
    return position // TOPIC_PAGE_SIZE * TOPIC_PAGE_SIZE


def page_for_position(position: int) -> int:
    """1-based topic page number holding the post at ``position`` (1-based)."""
    return (position - 1) // TOPIC_PAGE_SIZE + 1
