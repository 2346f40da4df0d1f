"""Exceptions raised by the Bitcointalk miner."""

from typing import Optional


class BitcointalkError(Exception):
    """Base class for every error raised by this package."""


class InvalidInputError(BitcointalkError, ValueError):
    """A link or ID supplied by the caller does not match the forum's URL grammar."""

    def __init__(self, message: str, kind: str = "input"):
        super().__init__(f"Invalid input for {kind}: {message}.")
        self.kind = kind


class TransientNetworkError(BitcointalkError):
    """A single fetch failed at the transport level (timeout, DNS, HTTP error, proxy)."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class ConnectivityExhaustedError(BitcointalkError):
    """Every attempt allowed for a page failed."""

    def __init__(self, label: str, attempts: int):
        super().__init__(f"Can't connect to Bitcointalk to fetch {label} after {attempts} attempts")
        self.label = label
        self.attempts = attempts


class StructuralMismatchError(BitcointalkError):
    """A page was fetched but its expected markup anchors are missing.

    Retrying can not fix a markup mismatch, so this is never retried.
    """

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message if url is None else f"{message} ({url})")
        self.url = url


class PostParseError(BitcointalkError):
    """One record of an otherwise valid page could not be parsed."""


class EnrichmentImpossibleError(BitcointalkError):
    """None of the enrichment strategies located the requested post."""


class ScanCancelled(Exception):
    """Raised when a scan observes a cancelled ``CancelToken``.

    Not a ``BitcointalkError``: cancellation is a cooperative abort, not a failure.
    """


class CancelToken:
    """
    Cooperative cancellation flag shared between a caller and a running scan.

    Scans check the token between retry attempts and between pages, never in the
    middle of a fetch.

    Example:
        token = CancelToken()
        task = asyncio.create_task(walker.scan_topic(topic, 1, 50, cancel=token))
        ...
        token.cancel()
    """

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ScanCancelled("Scan cancelled by caller")


def check_cancelled(token: Optional[CancelToken]) -> None:
    """Raise ``ScanCancelled`` if ``token`` is set and has been cancelled."""
    if token is not None:
        token.raise_if_cancelled()
