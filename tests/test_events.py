"""Tests for notification sinks."""

import logging

from bitcointalk_miner.events import (
    FetchAttempt,
    LoggingSink,
    PageProcessed,
    ScanFailure,
    ScanStats,
    fan_out,
)


class TestScanStats:
    def test_counts_events(self):
        stats = ScanStats()
        stats(FetchAttempt(0, False, "Attempt #1: failed"))
        stats(FetchAttempt(1, True, "Attempt #2: ok"))
        stats(PageProcessed(1, 0.5, ("a", "b")))
        stats(ScanFailure("Failed to fetch post content"))
        stats(ScanFailure("Failed to fetch post content"))

        assert stats.attempts == 2
        assert stats.failed_attempts == 1
        assert stats.pages_processed == 1
        assert stats.records_seen == 2
        assert stats.last_progress == 0.5
        assert stats.failure_messages["Failed to fetch post content"] == 2

    def test_summary(self):
        stats = ScanStats()
        stats(PageProcessed(1, 1.0, ("a",)))
        summary = stats.get_summary()
        assert "Pages processed: 1" in summary
        assert "Scan failures" not in summary

        stats(ScanFailure("boom"))
        assert "boom: 1" in stats.get_summary()


class TestFanOut:
    def test_every_sink_receives(self):
        first, second = [], []
        sink = fan_out(first.append, None, second.append)
        event = PageProcessed(2, 1.0)
        sink(event)
        assert first == [event]
        assert second == [event]


class TestLoggingSink:
    def test_failed_attempt_logged_as_warning(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="bitcointalk_miner.events"):
            LoggingSink()(FetchAttempt(0, False, "Attempt #1: Download of topic page #1 failed"))
        assert any(r.levelno == logging.WARNING and "topic page #1" in r.getMessage() for r in caplog.records)

    def test_page_logged_as_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="bitcointalk_miner.events"):
            LoggingSink()(PageProcessed(3, 0.75, (), "https://bitcointalk.org/index.php?topic=5.0"))
        assert "Processed page 3" in caplog.text
