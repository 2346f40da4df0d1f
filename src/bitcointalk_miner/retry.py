"""
Bounded retry with linearly increasing backoff.

Every page fetch (and the parsing that follows it) runs through ``with_retry``.
After the n-th failed attempt (counting from 0) the policy waits
``base_delay * n`` seconds, so a page that fails k times and then succeeds sees
the delays 0, base, 2*base, ..., (k-1)*base.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .config import MAX_ATTEMPTS
from .errors import CancelToken, ConnectivityExhaustedError, TransientNetworkError, check_cancelled
from .events import FetchAttempt, NotificationSink

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retry(
    attempt_fn: Callable[[], Awaitable[T]],
    max_attempts: int = MAX_ATTEMPTS,
    base_delay: float = 0.0,
    *,
    cancel: Optional[CancelToken] = None,
    sink: Optional[NotificationSink] = None,
    label: str = "page",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run ``attempt_fn`` until it succeeds or ``max_attempts`` attempts failed.

    Only ``TransientNetworkError`` is retried; anything else (a structural
    mismatch, a programming error) propagates from the first attempt.

    Args:
        attempt_fn: Coroutine function performing one fetch+parse unit
        max_attempts: Number of attempts before giving up
        base_delay: Backoff unit in seconds
        cancel: Token checked between attempts
        sink: Receives a ``FetchAttempt`` for every attempt
        label: Describes the unit of work in notifications (e.g. "topic page #2")
        sleep: Awaitable sleep, replaceable for testing

    Returns:
        Whatever ``attempt_fn`` returned on its first successful attempt

    Raises:
        ConnectivityExhaustedError: every attempt failed
        ScanCancelled: the token was cancelled between two attempts
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: Optional[TransientNetworkError] = None
    for attempt in range(max_attempts):
        try:
            result = await attempt_fn()
        except TransientNetworkError as e:
            last_error = e
            final = attempt == max_attempts - 1
            prefix = "Last attempt: " if final else f"Attempt #{attempt + 1}: "
            status = f"{prefix}Download of {label} failed ({e.reason})."
            if not final:
                status += " Waiting and attempting to fetch page again."
            _emit(sink, FetchAttempt(attempt, False, status, label))
            if final:
                break
            check_cancelled(cancel)
            await sleep(base_delay * attempt)
            continue

        _emit(sink, FetchAttempt(attempt, True, f"Attempt #{attempt + 1}: {label} fetched.", label))
        return result

    logger.error("Giving up on %s after %d attempts", label, max_attempts)
    raise ConnectivityExhaustedError(label, max_attempts) from last_error


def _emit(sink: Optional[NotificationSink], event: FetchAttempt) -> None:
    if sink is not None:
        sink(event)
