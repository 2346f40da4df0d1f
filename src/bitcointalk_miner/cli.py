"""CLI interface for the Bitcointalk miner."""

import asyncio
import logging
from typing import Any, Iterable, Optional

import click
from tqdm import tqdm

from .client import BitcointalkClient
from .config import DEFAULT_REQUEST_DELAY_MS, DEFAULT_SMILEY_REPLACER, MAX_RECENT_PAGES, WebConfig
from .errors import BitcointalkError, ScanCancelled
from .events import Event, FetchAttempt, PageProcessed, ScanFailure, ScanStats, fan_out
from .utils import dump_json, to_records, write_json_atomic

logger = logging.getLogger(__name__)


class ProgressBarSink:
    """Shows scan progress as a tqdm bar; failures are printed above it."""

    def __init__(self, desc: str, enabled: bool = True):
        self.bar = tqdm(total=100, desc=desc, unit="%", disable=not enabled, leave=False)

    def __call__(self, event: Event) -> None:
        if isinstance(event, PageProcessed):
            self.bar.n = round(event.progress * 100)
            self.bar.set_postfix(page=event.page)
        elif isinstance(event, FetchAttempt) and not event.succeeded:
            self.bar.write(event.status)
        elif isinstance(event, ScanFailure):
            self.bar.write(f"Failure: {event.message}")

    def close(self) -> None:
        self.bar.close()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@click.group()
@click.option(
    '--delay-ms',
    envvar='BITCOINTALK_REQUEST_DELAY_MS',
    default=DEFAULT_REQUEST_DELAY_MS,
    show_default=True,
    type=click.IntRange(min=0),
    help='Minimum delay between requests in milliseconds (also the retry backoff unit)'
)
@click.option(
    '--proxy',
    envvar='BITCOINTALK_PROXY',
    default=None,
    help='Proxy URL every request is routed through'
)
@click.option(
    '--smiley-replacer',
    default=DEFAULT_SMILEY_REPLACER,
    show_default=True,
    help='Text substituted for smileys in post bodies'
)
@click.option('--progress/--no-progress', default=True, help='Show a progress bar')
@click.option('-v', '--verbose', is_flag=True, help='Enable debug logging')
@click.pass_context
def main(ctx, delay_ms, proxy, smiley_replacer, progress, verbose):
    """Bitcointalk Miner - incremental scraper for Bitcointalk boards, topics and posts."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj['config'] = WebConfig(
        request_delay_ms=delay_ms,
        proxy_url=proxy,
        smiley_replacer=smiley_replacer,
    )
    ctx.obj['progress'] = progress


output_option = click.option(
    '--output', '-o',
    type=click.Path(dir_okay=False),
    default=None,
    help='Write JSON to this file instead of stdout'
)


@main.command()
@click.argument('board_link')
@click.option('--start-page', default=1, show_default=True, type=int, help='First board page to scan')
@click.option('--pages', default=1, show_default=True, type=int, help='Number of board pages to scan')
@output_option
@click.pass_context
def topics(ctx, board_link, start_page, pages, output):
    """List the topics of a board."""

    async def run(client):
        return await client.get_topics(board_link, start_page, pages)

    _emit(_run(ctx, "Board pages", run), output)


@main.command()
@click.argument('topic_link')
@click.option('--start-page', default=1, show_default=True, type=int, help='First topic page to scan')
@click.option('--pages', default=1, show_default=True, type=int, help='Number of topic pages to scan')
@click.option('--all', 'whole_topic', is_flag=True, help='Fetch every post of the topic')
@click.option('--full-details', is_flag=True, help='With --all, never fall back to the print view')
@output_option
@click.pass_context
def posts(ctx, topic_link, start_page, pages, whole_topic, full_details, output):
    """List the posts of a topic."""

    async def run(client):
        if whole_topic:
            return await client.get_all_posts(topic_link, full_details)
        return await client.get_posts(topic_link, start_page, pages)

    _emit(_run(ctx, "Topic pages", run), output)


@main.command()
@click.option('--link', default=None, help='Direct link of the post')
@click.option('--topic', 'topic_link', default=None, help='Link of the topic holding the post')
@click.option('--position', default=None, type=click.IntRange(min=1), help='Number of the post within the topic')
@click.option('--author', 'author_link', default=None, help='Profile link of the post author')
@click.option(
    '--date',
    default=None,
    type=click.DateTime(formats=['%Y-%m-%dT%H:%M:%S', '%Y-%m-%d %H:%M:%S']),
    help='Creation time of the post (forum time)'
)
@output_option
@click.pass_context
def post(ctx, link, topic_link, position, author_link, date, output):
    """Fetch one post by link, by position or by author and date."""
    if link:
        async def run(client):
            return await client.get_post(link)
    elif topic_link and position:
        async def run(client):
            return await client.get_post_at(topic_link, position)
    elif topic_link and author_link and date:
        async def run(client):
            return await client.get_post_by_author(topic_link, author_link, date)
    else:
        raise click.UsageError("Use --link, --topic with --position, or --topic with --author and --date")

    found = _run(ctx, "Post", run)
    if not found.is_complete:
        click.echo(f"Warning: post {found.link or ''} could only be partially completed", err=True)
    _emit([found], output)


@main.command()
@click.option(
    '--pages',
    default=1,
    show_default=True,
    type=click.IntRange(min=0, max=MAX_RECENT_PAGES),
    help='Number of recent posts pages to scan'
)
@output_option
@click.pass_context
def recent(ctx, pages, output):
    """List the most recent posts of the forum."""

    async def run(client):
        return await client.get_recent_posts(pages)

    _emit(_run(ctx, "Recent pages", run), output)


def _run(ctx, desc: str, operation) -> Any:
    """Run ``operation(client)`` and turn package errors into CLI errors."""
    config: WebConfig = ctx.obj['config']
    bar = ProgressBarSink(desc, enabled=ctx.obj['progress'])
    stats = ScanStats()

    async def runner():
        async with BitcointalkClient(config, sink=fan_out(bar, stats)) as client:
            return await operation(client)

    try:
        return asyncio.run(runner())
    except ScanCancelled:
        raise click.Abort()
    except BitcointalkError as e:
        logger.debug("Scan failed", exc_info=True)
        raise click.ClickException(str(e)) from e
    finally:
        bar.close()
        logger.info("Scan statistics:\n%s", stats.get_summary())


def _emit(items: Iterable[Any], output: Optional[str]) -> None:
    data = to_records(items)
    if output:
        path = write_json_atomic(output, data)
        click.echo(f"Saved {len(data)} records to {path}", err=True)
    else:
        click.echo(dump_json(data).decode("utf-8"))


if __name__ == '__main__':
    main()
