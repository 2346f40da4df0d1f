"""Synthetic Bitcointalk pages used across the test modules."""

from typing import Dict, Iterable, List, Optional

BASE = "https://bitcointalk.org/index.php"
REFERENCE_HEADER = '<span class="smalltext">April 05, 2024, 03:12:45 PM</span>'


def post_row(
    topic_id: str,
    msg_id: str,
    position: int,
    body: str,
    author: str = "alice",
    author_id: str = "1",
    title: str = "Hello world",
    date: str = "March 01, 2023, 11:59:59 PM",
) -> str:
    link = f"{BASE}?topic={topic_id}.msg{msg_id}#msg{msg_id}"
    return f"""
<tr>
  <td class="poster_info"><b><a href="{BASE}?action=profile;u={author_id}">{author}</a></b></td>
  <td class="td_headerandpost">
    <table><tr>
      <td valign="middle">
        <div class="subject"><a href="{link}">{title}</a></div>
        <div class="smalltext">{date}</div>
      </td>
      <td align="right"><a class="message_number" href="{link}">#{position}</a></td>
    </tr></table>
    <hr />
    <div class="post">{body}</div>
  </td>
</tr>"""


def topic_page(rows: Iterable[str], max_pages: int = 1, header: str = REFERENCE_HEADER) -> str:
    nav = " ".join(
        f'<a class="navPages" href="{BASE}?topic=5.{(page - 1) * 20}">{page}</a>'
        for page in range(2, max_pages + 1)
    )
    return f"""<html><body>
{header}
<table><tr><td class="middletext">Pages: [<b>1</b>] {nav}</td></tr></table>
<table>{"".join(rows)}</table>
</body></html>"""


def page_rows(topic_id: str, page: int, count: int = 20) -> List[str]:
    """Rows of ``count`` posts numbered from ``(page - 1) * 20 + 1``."""
    first = (page - 1) * 20 + 1
    return [
        post_row(topic_id, str(1000 + position), position, f"Body of post {position}",
                 author=f"user{position}", author_id=str(position))
        for position in range(first, first + count)
    ]


def simple_topic_page(topic_id: str, page: int, count: int = 20, max_pages: int = 1) -> str:
    return topic_page(page_rows(topic_id, page, count), max_pages=max_pages)


def board_row(topic_id: str, page_offsets: Optional[List[int]] = None, all_link: bool = False,
              relative: bool = False) -> str:
    prefix = "index.php" if relative else BASE
    main_link = f'<span id="msg_{topic_id}"><a href="{prefix}?topic={topic_id}.0">Topic {topic_id}</a></span>'
    links = [f'<a href="{prefix}?topic={topic_id}.{offset}">{offset // 20 + 1}</a>' for offset in page_offsets or []]
    if all_link:
        links.append(f'<a href="{prefix}?topic={topic_id}.0;all">All</a>')
    return f"<tr><td>{main_link} <small>{' '.join(links)}</small></td></tr>"


def board_page(rows: Iterable[str]) -> str:
    return f"<html><body><table>{''.join(rows)}</table></body></html>"


def recent_block(topic_id: str, msg_id: str, body: str, author: str = "bob",
                 date: str = "on: Today at 02:30:00 PM", title: str = "Re: Hello") -> str:
    link = f"{BASE}?topic={topic_id}.msg{msg_id}#msg{msg_id}"
    return f"""
<table>
  <tr class="titlebg2"><td class="middletext">
    <div style="float: left;"><b><a href="{link}">{title}</a></b></div>
    <div align="right">{date}</div>
  </td></tr>
  <tr><td class="catbg"><span class="middletext">
    <a href="{BASE}?action=profile;u=99">starter</a> by <a href="{BASE}?action=profile;u=2">{author}</a>
  </span></td></tr>
  <tr><td class="windowbg2"><div class="post">{body}</div></td></tr>
</table>"""


def recent_page(blocks: Iterable[str]) -> str:
    return f"<html><body>{REFERENCE_HEADER}{''.join(blocks)}</body></html>"


def print_page(topic_id: str, bodies: Iterable[str]) -> str:
    posts = "".join(f'<div style="margin: 0 5ex;">{body}</div><hr />' for body in bodies)
    return f"""<html><head><link rel="canonical" href="{BASE}?topic={topic_id}.0" /></head>
<body>{posts}</body></html>"""


class FakeFetcher:
    """In-memory fetcher: serves pages by URL and counts requests."""

    def __init__(self, pages: Dict[str, str]):
        self.pages = dict(pages)
        self.calls: List[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        try:
            return self.pages[url]
        except KeyError:
            raise AssertionError(f"Unexpected fetch of {url}")

    def count(self, url: str) -> int:
        return self.calls.count(url)


async def no_sleep(seconds: float) -> None:
    return None
