"""
Retry with backoff.

A single combinator around tenacity used by every remote call that may hit
transient failures. Callers decide which exceptions are retryable.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_incrementing,
)

from .errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackoffPolicy(Enum):
    """How the delay grows between attempts."""
    LINEAR = "linear"            # base * attempt
    EXPONENTIAL = "exponential"  # base, 2*base, 4*base, ...


def make_wait(policy: BackoffPolicy, base_delay: float, max_delay: float):
    """Build the tenacity wait strategy for a backoff policy."""
    if policy == BackoffPolicy.LINEAR:
        return wait_incrementing(start=base_delay, increment=base_delay, max=max_delay)
    return wait_exponential(multiplier=base_delay, min=0, max=max_delay)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(f"Attempt {retry_state.attempt_number} failed: {exc}. "
                   f"Retrying in {delay:.2f}s...")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    should_retry: Callable[[BaseException], bool],
    max_attempts: int = 3,
    backoff: BackoffPolicy = BackoffPolicy.EXPONENTIAL,
    base_delay: float = 2.0,
    max_delay: float = 30.0,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """
    Run an async operation with bounded retries.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        should_retry: Predicate deciding whether an exception is transient
        max_attempts: Total number of calls allowed, including the first
        backoff: Delay growth policy
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay
        sleep: Awaitable sleep function (defaults to asyncio.sleep)

    Returns:
        The operation's result

    Raises:
        RetryExhaustedError: if every attempt failed with a retryable error
        Exception: the first non-retryable error, unchanged
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=make_wait(backoff, base_delay, max_delay),
        retry=retry_if_exception(should_retry),
        before_sleep=_log_retry,
        sleep=sleep or asyncio.sleep,
    )

    try:
        async for attempt in retrying:
            with attempt:
                return await operation()
    except RetryError as e:
        last = e.last_attempt.exception()
        logger.error(f"All {max_attempts} attempts failed: {last}")
        raise RetryExhaustedError(max_attempts, last) from last
