"""Blind retry with exponential backoff for flaky provider calls.

Every exception is retried the same way: attempt i (0-based) that fails is
followed by a sleep of ``base_delay * 2**i``. There is no jitter and no
error classification; after the last attempt the original exception is
re-raised unchanged.

Usage:
    from omnipedia.services.retry import call_with_retry

    text = await call_with_retry(
        lambda: _call(client, prompt), retries=3, base_delay=1.0, context="Plan Object"
    )
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

from omnipedia.config import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _log_failed_attempt(context: str) -> Callable[[RetryCallState], None]:
    """Build a tenacity ``after`` hook that logs each failed attempt."""

    def _after(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Attempt %d failed for %s: %s: %s",
            retry_state.attempt_number,
            context,
            type(exc).__name__,
            exc,
        )

    return _after


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    base_delay: float = 1.0,
    context: str = "",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """Invoke ``operation`` up to ``retries`` times with exponential backoff.

    Args:
        operation: Zero-argument coroutine function performing one attempt.
        retries: Total number of attempts (>= 1).
        base_delay: Delay in seconds after the first failed attempt.
        context: Label used when logging failed attempts.
        sleep: Async sleep function; defaults to asyncio.sleep.

    Returns:
        The operation's result from the first successful attempt.

    Raises:
        Exception: The last attempt's exception once retries are exhausted.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, retries)),
        wait=wait_exponential(multiplier=base_delay, exp_base=2),
        after=_log_failed_attempt(context or "operation"),
        sleep=sleep or asyncio.sleep,
        reraise=True,
    )
    return await retrying(operation)


async def call_with_policy(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    context: str,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """Shorthand for call_with_retry driven by a configured RetryPolicy."""
    return await call_with_retry(
        operation,
        retries=policy.attempts,
        base_delay=policy.base_delay,
        context=context,
        sleep=sleep,
    )
