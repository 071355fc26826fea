"""Bounded exponential-backoff retry for async operations.

Used by the brokered provider around its two-hop token exchange. The delay
before attempt ``n + 1`` is
``min(base_delay_ms * backoff_multiplier ** (n - 1), max_delay_ms)``, so
delays never decrease and never exceed the cap. Only errors the caller's
predicate accepts are retried; anything else propagates immediately, as
does the last error once ``max_attempts`` is reached.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from patcher_auth.models import RetryConfig
from patcher_auth.output import debug
from patcher_auth.redaction import sanitize

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryConfig,
    is_retryable: Callable[[BaseException], bool],
    sleep: Sleep = asyncio.sleep,
    label: str = "operation",
) -> T:
    """Run *operation* until it succeeds, fails permanently, or attempts run out.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt.
        policy: Attempt count and backoff parameters.
        is_retryable: Predicate deciding whether a raised exception may be
            retried.
        sleep: Awaitable sleep used between attempts.
        label: Short description used in debug messages.

    Returns:
        Whatever *operation* returns on its first successful attempt.

    Raises:
        Exception: The last error raised by *operation*.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if attempt >= policy.max_attempts or not is_retryable(exc):
                raise
            delay = policy.delay_for(attempt)
            debug(
                f"{label} attempt {attempt}/{policy.max_attempts} failed "
                f"({sanitize(str(exc))}), retrying in {delay * 1000:.0f}ms"
            )
            await sleep(delay)
            attempt += 1
