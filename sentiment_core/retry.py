from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from sentiment_core.errors import ClassificationCancelled, RateLimitedError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# only consulted when the error carries no numeric status
RATE_LIMIT_MARKERS = re.compile(
    r"\b429\b|resource_exhausted|quota|rate[ -]limit|too many requests",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff for rate-limit failures only.

    With the defaults the waits are 2s, 4s, 8s and the operation runs
    at most 4 times.
    """

    retries: int = 3
    initial_delay_sec: float = 2.0
    multiplier: float = 2.0
    attempt_timeout_sec: Optional[float] = None


def is_rate_limit_error(exc: BaseException) -> bool:
    """
    Rules:
    - RateLimitedError -> always
    - numeric status_code/code/status present -> only when it is 429
    - no status -> message markers
    """
    if isinstance(exc, RateLimitedError):
        return True
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value == 429
    return RATE_LIMIT_MARKERS.search(str(exc)) is not None


async def call_with_retry(
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy = RetryPolicy(),
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        cancel: Optional[asyncio.Event] = None,
) -> T:
    """
    Run operation, retrying on rate-limit failures with a growing delay.

    Every retry re-executes the operation in full, so it must be safe
    to repeat.

    Raises:
        the original exception: non rate-limit failures, or retries exhausted
        TransportError: an attempt exceeded policy.attempt_timeout_sec
        ClassificationCancelled: cancel was set before or during a backoff wait
    """
    remaining = policy.retries
    delay = policy.initial_delay_sec
    attempt = 0

    while True:
        attempt += 1
        try:
            return await _run_attempt(operation, policy.attempt_timeout_sec)
        except Exception as e:
            if not is_rate_limit_error(e):
                raise
            if remaining <= 0:
                logger.error("Rate limited, retries exhausted: attempts=%s err=%s", attempt, e)
                raise

            _raise_if_cancelled(cancel, attempt, e)
            logger.warning(
                "Rate limited (retrying): attempt=%s remaining=%s sleep=%.2fs err=%s",
                attempt,
                remaining,
                delay,
                e,
            )
            await _wait_backoff(delay, sleep, cancel)
            _raise_if_cancelled(cancel, attempt, e)
            remaining -= 1
            delay *= policy.multiplier


async def _wait_backoff(
        delay: float,
        sleep: Callable[[float], Awaitable[None]],
        cancel: Optional[asyncio.Event],
) -> None:
    """Sleep for delay, returning early once cancel is set."""
    if cancel is None:
        await sleep(delay)
        return

    sleeper = asyncio.ensure_future(sleep(delay))
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, waiter):
            if not task.done():
                task.cancel()
    if sleeper.done() and not sleeper.cancelled():
        sleeper.result()


def _raise_if_cancelled(
        cancel: Optional[asyncio.Event],
        attempt: int,
        cause: Exception,
) -> None:
    # checked between attempts only; an in-flight call is never aborted
    if cancel is not None and cancel.is_set():
        raise ClassificationCancelled(f"Cancelled after {attempt} attempt(s)") from cause


async def _run_attempt(
        operation: Callable[[], Awaitable[T]],
        timeout_sec: Optional[float],
) -> T:
    if timeout_sec is None:
        return await operation()
    try:
        return await asyncio.wait_for(operation(), timeout=timeout_sec)
    except asyncio.TimeoutError as e:
        raise TransportError(f"Model call timed out after {timeout_sec:.1f}s") from e
