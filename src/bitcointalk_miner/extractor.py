"""
HTML to record extraction for Bitcointalk pages.

Four page kinds are understood:
- topic pages (20 posts each), parsed into complete posts
- board pages (40 topics each), parsed into topics with their page counts
- the "print" view of a topic, parsed into reduced posts (topic, position, body)
- the "recent posts" pages, parsed into complete posts without position

Post bodies are cleaned before extraction: smileys are replaced by a
configurable string, quotes and code blocks are removed and links are unwrapped
so that only the author's own text remains.
"""

import logging
import re
from datetime import date
from typing import List, Optional, Set, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from . import urls
from .config import DEFAULT_SMILEY_REPLACER, INDEX_URL, TOPIC_PAGE_SIZE
from .dates import normalize_text, parse_reference_date, resolve_post_date
from .errors import InvalidInputError, PostParseError, StructuralMismatchError
from .events import NotificationSink, ScanFailure
from .identity import PostSet
from .models import Post, Topic

logger = logging.getLogger(__name__)

SMILEY_RE = re.compile(
    r'<img src="https://bitcointalk\.org/Smileys/default/[a-z\s]+\.gif" alt="[a-zA-Z\s]+" border="0" />'
)
ALL_MARKER_RE = re.compile(r';all$')

# Removed from post bodies, in this order, before links are unwrapped
POST_NOISE_SELECTORS = (
    "div.post > div.quoteheader",
    "div.post > div.quote",
    "div.post > div.code",
    "div.post > br",
)

RECENT_DATE_PREFIX = "on:"


class ContentExtractor:
    """
    Turns one fetched page into records.

    Usage:
        extractor = ContentExtractor(smiley_replacer=" ")
        posts = extractor.parse_topic_page(html)
    """

    def __init__(self, smiley_replacer: str = DEFAULT_SMILEY_REPLACER):
        self.smiley_replacer = smiley_replacer

    # -------------------------------------------------------
    # TOPIC PAGES
    # -------------------------------------------------------

    def parse_topic_page(
        self,
        html: str,
        sink: Optional[NotificationSink] = None,
        source: Optional[str] = None,
    ) -> PostSet:
        """
        Extract every post of a topic page.

        A post that can't be fully parsed is kept as a reduced record (topic,
        position, body); one that can't even be reduced is dropped and reported
        to ``sink`` as a ``ScanFailure``.

        Raises:
            StructuralMismatchError: the page holds no post containers at all
        """
        soup = self._clean_posts(html, scope_all=False)
        reference = self._reference_date(soup)

        containers = soup.select("td.td_headerandpost")
        if not containers:
            raise StructuralMismatchError("No post containers on topic page", source)

        posts = PostSet()
        previous_text = None
        for container in containers:
            body = container.select_one("div.post")
            text = body.get_text() if body is not None else None
            # The forum sometimes renders the first post again as a placeholder
            if text is not None and text == previous_text:
                logger.debug("Skipping duplicated post container on %s", source or "topic page")
                continue
            previous_text = text

            try:
                posts.add(self._parse_full_post(container, reference))
                continue
            except (PostParseError, ValueError) as e:
                logger.debug("Falling back to reduced post: %s", e)

            try:
                posts.add(self._parse_reduced_post(container))
            except (PostParseError, ValueError) as e:
                logger.warning("Dropping post on %s: %s", source or "topic page", e)
                _notify(sink, ScanFailure("Failed to fetch post content", source))

        return posts

    def _parse_full_post(self, container, reference: Optional[date]) -> Post:
        anchor = _require(container, "a.message_number[href]")
        topic_id, msg_id = urls.parse_post_link(anchor["href"])

        author = container.parent.select_one("td.poster_info > b > a[href]") if container.parent else None
        if author is None:
            raise PostParseError("post has no author cell")

        return Post(
            topic_id=topic_id,
            msg_id=msg_id,
            message=_body_text(_require(container, "div.post")),
            author_name=author.get_text(strip=True),
            author_link=author["href"],
            title=_require(container, "div.subject > a[href]").get_text(strip=True),
            position=_message_number(anchor),
            date=resolve_post_date(_require(container, "div.smalltext").get_text(" "), reference),
        )

    def _parse_reduced_post(self, container) -> Post:
        anchor = _require(container, "a.message_number[href]")
        return Post(
            topic_id=urls.topic_id_from_any(anchor["href"]),
            position=_message_number(anchor),
            message=_body_text(_require(container, "div.post")),
        )

    def parse_max_pages(self, html: str) -> int:
        """Highest page number linked from a topic page's navigation, at least 1."""
        soup = BeautifulSoup(html, "lxml")
        highest = 1
        for link in soup.select("td.middletext > a.navPages"):
            text = link.get_text(strip=True)
            if text.isdigit():
                highest = max(highest, int(text))
        return highest

    # -------------------------------------------------------
    # BOARD PAGES
    # -------------------------------------------------------

    def parse_board_page(
        self,
        html: str,
        sink: Optional[NotificationSink] = None,
        source: Optional[str] = None,
    ) -> Set[Topic]:
        """
        Extract every topic listed on a board page.

        Each topic row carries a ``<small>`` cluster of page links. The link
        with the highest offset gives the page count; a ``;all`` link means the
        topic can be fetched as a whole.

        Raises:
            StructuralMismatchError: the page has no page-link clusters at all
        """
        soup = BeautifulSoup(html, "lxml")
        clusters = soup.find_all("small")
        if not clusters:
            raise StructuralMismatchError("No topic link clusters on board page", source)

        topics: Set[Topic] = set()
        for cluster in clusters:
            link, can_use_all = _select_topic_link(cluster)
            if not link:
                continue

            offset = urls.trailing_offset(link)
            max_pages = offset // TOPIC_PAGE_SIZE + 1 if offset is not None else 1
            try:
                topics.add(Topic(urljoin(INDEX_URL, link), can_use_all=can_use_all, max_pages=max_pages))
            except InvalidInputError as e:
                logger.warning("Skipping topic link %r on %s: %s", link, source or "board page", e)
                _notify(sink, ScanFailure(f"Unrecognized topic link {link}", source))

        return topics

    # -------------------------------------------------------
    # PRINT PAGES
    # -------------------------------------------------------

    def parse_print_page(
        self,
        html: str,
        sink: Optional[NotificationSink] = None,
        source: Optional[str] = None,
    ) -> List[Post]:
        """
        Extract the reduced posts of a topic's print view, in topic order.

        The print view has no message links, authors or dates; positions are
        the 1-based order of the posts on the page.
        """
        soup = self._clean_posts(html, scope_all=True)

        canonical = soup.select_one('link[rel="canonical"][href]')
        if canonical is None:
            raise StructuralMismatchError("Print page has no canonical topic link", source)
        topic_id = urls.topic_id_from_any(canonical["href"])

        containers = soup.select('div[style="margin: 0 5ex;"]')
        if not containers:
            raise StructuralMismatchError("No post containers on print page", source)

        posts = []
        for position, container in enumerate(containers, start=1):
            try:
                posts.append(Post(topic_id=topic_id, position=position, message=_body_text(container)))
            except ValueError as e:
                logger.warning("Dropping post #%d on %s: %s", position, source or "print page", e)
                _notify(sink, ScanFailure("Failed to fetch post content", source))
        return posts

    # -------------------------------------------------------
    # RECENT POSTS PAGES
    # -------------------------------------------------------

    def parse_recent_page(
        self,
        html: str,
        sink: Optional[NotificationSink] = None,
        source: Optional[str] = None,
    ) -> PostSet:
        """
        Extract the posts of a "recent posts" page.

        Every post sits in its own table whose header rows carry the link,
        title and date, and whose category row names the author. Positions
        are not shown on this page and stay 0.
        """
        soup = self._clean_posts(html, scope_all=False)
        reference = self._reference_date(soup)

        containers = soup.select("div.post")
        if not containers:
            raise StructuralMismatchError("No posts on recent posts page", source)

        posts = PostSet()
        for container in containers:
            try:
                posts.add(self._parse_recent_post(container, reference))
            except (PostParseError, ValueError) as e:
                logger.warning("Dropping recent post on %s: %s", source or "recent page", e)
                _notify(sink, ScanFailure("Failed to fetch post content", source))
        return posts

    def _parse_recent_post(self, container, reference: Optional[date]) -> Post:
        table = _ancestor(container, 3)
        header = _require(table, 'tr.titlebg2 td.middletext div[style="float: left;"] b a[href]')
        authors = table.select("td.catbg span.middletext a[href]")
        if len(authors) < 2:
            raise PostParseError("recent post has no author link")

        date_text = normalize_text(_require(table, 'tr.titlebg2 td.middletext div[align="right"]').get_text(" "))
        if date_text.startswith(RECENT_DATE_PREFIX):
            date_text = date_text[len(RECENT_DATE_PREFIX):].strip()

        topic_id, msg_id = urls.parse_post_link(header["href"])
        return Post(
            topic_id=topic_id,
            msg_id=msg_id,
            message=_body_text(container),
            author_name=authors[1].get_text(strip=True),
            author_link=authors[1]["href"],
            title=header.get_text(strip=True),
            date=resolve_post_date(date_text, reference),
        )

    # -------------------------------------------------------
    # SHARED STEPS
    # -------------------------------------------------------

    def _clean_posts(self, html: str, scope_all: bool) -> BeautifulSoup:
        """
        Strip presentation noise from post bodies.

        With ``scope_all`` (print view) quotes are removed wherever they are and
        every link is unwrapped; otherwise only inside ``div.post``.
        """
        html = html.replace("</div>", "</div><br />")
        if not scope_all:
            html = SMILEY_RE.sub(lambda _: self.smiley_replacer, html)
        soup = BeautifulSoup(html, "lxml")

        if scope_all:
            _remove_all(soup, "div.quoteheader")
            _remove_all(soup, "div.quote")
            _remove_all(soup, "div.post > div.code")
            _remove_all(soup, "a[href]", unwrap=True)
        else:
            for selector in POST_NOISE_SELECTORS:
                _remove_all(soup, selector)
            _remove_all(soup, "div.post a[href]", unwrap=True)
            _remove_all(soup, "img.userimg")
        return soup

    def _reference_date(self, soup: BeautifulSoup) -> Optional[date]:
        node = soup.select_one("span.smalltext")
        if node is None:
            return None
        try:
            return parse_reference_date(node.get_text(" "))
        except ValueError as e:
            logger.debug("No usable reference date: %s", e)
            return None


def _remove_all(soup: BeautifulSoup, selector: str, unwrap: bool = False) -> None:
    """Remove (or unwrap) matches of ``selector`` until none are left."""
    nodes = soup.select(selector)
    while nodes:
        for node in nodes:
            if unwrap:
                node.unwrap()
            else:
                node.extract()
        nodes = soup.select(selector)


def _require(node, selector: str):
    found = node.select_one(selector)
    if found is None:
        raise PostParseError(f"missing {selector}")
    return found


def _ancestor(node, levels: int):
    for _ in range(levels):
        if node.parent is None:
            raise PostParseError("post is not inside its header table")
        node = node.parent
    return node


def _body_text(node) -> str:
    for br in node.find_all("br"):
        br.replace_with("\n")
    return node.get_text().strip()


def _message_number(anchor) -> int:
    """Position of a post from its "#12" message-number anchor."""
    return int(anchor.get_text(strip=True).lstrip("#"))


def _select_topic_link(cluster) -> Tuple[str, bool]:
    """Pick the link a board row's page-link cluster stands for."""
    if cluster.find("a", href=True, recursive=False) is None:
        single = cluster.parent.select_one(":scope > span > a[href]") if cluster.parent else None
        return (single["href"] if single is not None else ""), True

    can_use_all = False
    selected = ""
    for anchor in cluster.find_all("a", href=True, recursive=False):
        link = anchor["href"]
        if "topic=" not in link:
            continue
        if ALL_MARKER_RE.search(link):
            can_use_all = True
            link = ALL_MARKER_RE.sub("", link)
        if not selected or (urls.trailing_offset(link) or 0) > (urls.trailing_offset(selected) or 0):
            selected = link

    if not selected and cluster.parent is not None:
        for anchor in cluster.parent.select(":scope > span[id] > a[href]"):
            if "topic=" in anchor["href"]:
                selected = anchor["href"]

    return selected, can_use_all


def _notify(sink: Optional[NotificationSink], event) -> None:
    if sink is not None:
        sink(event)
