"""
Equivalence of (possibly partial) posts.

A post can be known from three contexts before it has been fetched: its direct
link, its position in a topic, or its author and creation time within a topic.
Two posts are the same post under the first rule that applies:

1. both links are known and equal;
2. same topic and the same (known, non-zero) position;
3. same topic, the same creation time and the same author profile link.

The hash has to agree with all three rules at once, so it is computed from the
topic link, the one field every rule requires to be equal. Collections of many
posts use ``PostSet``, which looks posts up by their keys instead of their hash.
"""

from collections.abc import MutableSet
from typing import Dict, Iterable, Iterator, List, Optional, Tuple


def same_post(a, b) -> bool:
    """Return True if ``a`` and ``b`` denote the same forum post."""
    if a is b:
        return True

    if a.link is not None and b.link is not None and a.link == b.link:
        return True

    topic = a.topic_link_unfinished
    if topic is None or topic != b.topic_link_unfinished:
        return False

    if a.position and b.position and a.position == b.position:
        return True

    return (
        a.date is not None and a.date == b.date
        and a.author_link is not None and a.author_link == b.author_link
    )


def identity_key(post) -> Optional[Tuple]:
    """
    The most specific identifying tuple known for ``post``.

    Returns:
        ("link", link), ("position", topic, position),
        ("author", topic, date, author_link), or None when the post can only
        be told apart by object identity.
    """
    if post.link is not None:
        return ("link", post.link)
    topic = post.topic_link_unfinished
    if topic is None:
        return None
    if post.position:
        return ("position", topic, post.position)
    if post.date is not None and post.author_link is not None:
        return ("author", topic, post.date, post.author_link)
    return None


def identity_hash(post) -> int:
    topic = post.topic_link_unfinished
    if topic is None:
        return object.__hash__(post)
    return hash(topic)


def identity_keys(post) -> List[Tuple]:
    """Every identifying tuple known for ``post``, most specific first."""
    keys = []
    if post.link is not None:
        keys.append(("link", post.link))
    topic = post.topic_link_unfinished
    if topic is not None:
        if post.position:
            keys.append(("position", topic, post.position))
        if post.date is not None and post.author_link is not None:
            keys.append(("author", topic, post.date, post.author_link))
    return keys


class PostSet(MutableSet):
    """
    A set of posts indexed by their identifying tuples.

    Every post of a topic shares one hash, so a built-in ``set`` of posts
    compares each new post against all others. ``PostSet`` looks posts up by
    each of their keys instead: a post is already present when any of its
    keys is, which is exactly when ``same_post`` holds for some member.
    Posts without any key are told apart by object identity.

    Keys are taken when a post is added; don't change a member's link,
    position, author or date while it is in the set.
    """

    def __init__(self, posts: Iterable = ()):
        self._members: Dict[int, object] = {}
        self._index: Dict[Tuple, object] = {}
        self.update(posts)

    def _find(self, post):
        if id(post) in self._members:
            return post
        for key in identity_keys(post):
            member = self._index.get(key)
            if member is not None:
                return member
        return None

    def __contains__(self, post) -> bool:
        return hasattr(post, "topic_link_unfinished") and self._find(post) is not None

    def __iter__(self) -> Iterator:
        return iter(list(self._members.values()))

    def __len__(self) -> int:
        return len(self._members)

    def add(self, post) -> None:
        if self._find(post) is not None:
            return
        self._members[id(post)] = post
        for key in identity_keys(post):
            self._index.setdefault(key, post)

    def discard(self, post) -> None:
        member = self._find(post) if hasattr(post, "topic_link_unfinished") else None
        if member is None:
            return
        del self._members[id(member)]
        for key in identity_keys(member):
            if self._index.get(key) is member:
                del self._index[key]

    def update(self, posts: Iterable) -> None:
        for post in posts:
            self.add(post)

    def __repr__(self) -> str:
        return f"PostSet({len(self)} posts)"
