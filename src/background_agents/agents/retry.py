"""Bounded retry with exponential backoff for agent bodies.

The engine never retries ``run()`` on its own; bodies wrap flaky calls::

    result = await ctx.retry(lambda: client.get(url), max_attempts=5)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(base_delay: float, attempt: int) -> float:
    """Delay before retry number *attempt* (0-based): ``base * 2**attempt``."""
    return base_delay * (2 ** attempt)


async def retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``operation()`` up to *max_attempts* times.

    Parameters
    ----------
    operation:
        Zero-argument callable returning an awaitable. Called afresh on
        every attempt.
    max_attempts:
        Total number of attempts, including the first.
    base_delay:
        Seconds to wait after the first failure; doubled after each
        further failure.
    retry_on:
        Exception types that trigger a retry. Anything else propagates
        immediately.
    sleep:
        Awaitable sleep, injectable for tests.

    Raises the last failure once attempts are exhausted.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    for attempt in range(max_attempts):
        try:
            return await operation()
        except retry_on as exc:
            if attempt == max_attempts - 1:
                raise
            wait = backoff_delay(base_delay, attempt)
            logger.warning(
                "Attempt %d/%d failed, retrying in %.2fs: %s",
                attempt + 1, max_attempts, wait, exc,
            )
            await sleep(wait)

    raise AssertionError("unreachable")  # pragma: no cover
