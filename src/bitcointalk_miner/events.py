"""
Progress and failure notifications for the Bitcointalk miner.

This module implements:
- The notification event types emitted while scanning
- A logging sink (the default when the caller supplies none)
- Scan statistics (page/attempt/failure counters)
- Fan-out to several sinks at once

A sink is any callable that accepts one event. Sinks are observers only:
nothing they do changes how a scan proceeds.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Collection, Dict, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageProcessed:
    """
    A board, topic or recent-posts page has been processed.

    Attributes:
        page: Page number (starting with 1)
        progress: Pages completed / pages requested, between 0 and 1
        records: Records found on that page (topics or posts)
        source: Link of the container being scanned
    """
    page: int
    progress: float
    records: Collection[Any] = ()
    source: Optional[str] = None


@dataclass(frozen=True)
class ScanFailure:
    """Something went wrong while scanning; the scan itself may still continue."""
    message: str
    source: Optional[str] = None


@dataclass(frozen=True)
class FetchAttempt:
    """
    One fetch attempt finished.

    Attributes:
        attempt: Attempt index (starting with 0)
        succeeded: Whether the attempt produced a parsed page
        status: Human-readable description of the outcome
        source: What was being fetched (e.g. "topic page #3")
    """
    attempt: int
    succeeded: bool
    status: str
    source: Optional[str] = None


Event = Union[PageProcessed, ScanFailure, FetchAttempt]
NotificationSink = Callable[[Event], None]


class LoggingSink:
    """Writes every notification to the package logger."""

    def __call__(self, event: Event) -> None:
        if isinstance(event, PageProcessed):
            logger.info("Processed page %d of %s (%.0f%%, %d records)",
                        event.page, event.source or "scan", event.progress * 100,
                        len(event.records))
        elif isinstance(event, FetchAttempt):
            if event.succeeded:
                logger.debug("%s", event.status)
            else:
                logger.warning("%s", event.status)
        elif isinstance(event, ScanFailure):
            logger.warning("Scan failure (%s): %s", event.source or "scan", event.message)


@dataclass
class ScanStats:
    """
    Counters collected from scan notifications.

    Useful for monitoring scraper health and for summaries at the end of a run.
    """
    pages_processed: int = 0
    records_seen: int = 0
    attempts: int = 0
    failed_attempts: int = 0
    scan_failures: int = 0
    failure_messages: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    last_progress: float = 0.0

    def __call__(self, event: Event) -> None:
        if isinstance(event, PageProcessed):
            self.pages_processed += 1
            self.records_seen += len(event.records)
            self.last_progress = event.progress
        elif isinstance(event, FetchAttempt):
            self.attempts += 1
            if not event.succeeded:
                self.failed_attempts += 1
        elif isinstance(event, ScanFailure):
            self.scan_failures += 1
            self.failure_messages[event.message] += 1

    def get_summary(self) -> str:
        """
        Get a human-readable summary of the scan statistics.

        Returns:
            Formatted string with key statistics
        """
        summary = [
            f"Pages processed: {self.pages_processed}",
            f"Records seen: {self.records_seen}",
            f"Fetch attempts: {self.attempts} ({self.failed_attempts} failed)",
        ]

        if self.scan_failures > 0:
            summary.append(f"Scan failures: {self.scan_failures}")
            for message, count in self.failure_messages.items():
                summary.append(f"  {message}: {count}")

        return "\n".join(summary)


def fan_out(*sinks: Optional[NotificationSink]) -> NotificationSink:
    """Combine several sinks into one; ``None`` entries are ignored."""
    active = [sink for sink in sinks if sink is not None]

    def emit(event: Event) -> None:
        for sink in active:
            sink(event)

    return emit
