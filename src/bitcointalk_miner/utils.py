"""
Utility functions for the Bitcointalk miner.

This module provides helpers for ordering scan results and writing them as
JSON.
"""

from pathlib import Path
from typing import Any, Iterable, List, Union

import orjson

from .models import Post, Topic


def sort_posts(posts: Iterable[Post]) -> List[Post]:
    """
    Order posts by topic, then position, then creation time.

    Scans return unordered sets; this gives output files a stable order.
    Posts without position (recent posts) sort by date within their topic.
    """
    return sorted(
        posts,
        key=lambda p: (int(p.topic_id), p.position, p.date.isoformat() if p.date else "", p.msg_id or ""),
    )


def sort_topics(topics: Iterable[Topic]) -> List[Topic]:
    return sorted(topics, key=lambda t: int(t.topic_id))


def to_records(items: Iterable[Any]) -> List[dict]:
    """Convert posts, topics or boards to plain dictionaries, sorted when possible."""
    items = list(items)
    if items and all(isinstance(item, Post) for item in items):
        items = sort_posts(items)
    elif items and all(isinstance(item, Topic) for item in items):
        items = sort_topics(items)
    return [item.to_dict() for item in items]


def dump_json(data: Any) -> bytes:
    """
    Serialize ``data`` to indented JSON.

    Example:
        dump_json(to_records(posts))
        # b'[\\n  {\\n    "topic_id": "5", ...'
    """
    return orjson.dumps(data, option=orjson.OPT_INDENT_2)


def write_json_atomic(path: Union[str, Path], data: Any) -> Path:
    """
    Write ``data`` as JSON to ``path`` without leaving a half-written file.

    The JSON goes to a temporary sibling first, which then replaces the target.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + '.tmp')
    tmp.write_bytes(dump_json(data))
    tmp.replace(path)
    return path
