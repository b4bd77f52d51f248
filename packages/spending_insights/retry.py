"""Exponential-backoff retry for async model calls.

The policy is blunt: every exception is retried the same way, with no jitter,
until ``max_retries`` retries have been spent; the last error is then
re-raised unchanged.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .logging_setup import get_logger

T = TypeVar("T")

DEFAULT_MAX_RETRIES: int = 3
DEFAULT_BASE_DELAY: float = 1.0

_logger = get_logger("spending_insights.retry")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    label: str = "operation",
) -> T:
    """Await ``operation()`` with up to ``max_retries`` retries.

    Attempt ``n`` (0-based) that fails is followed by a wait of
    ``base_delay * 2**n`` seconds, so the defaults wait 1s, 2s and 4s.
    ``operation`` is therefore invoked at most ``max_retries + 1`` times.
    """

    if max_retries < 0:
        raise ValueError("max_retries must be >= 0")

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt >= max_retries:
                raise
            delay = base_delay * (2**attempt)
            _logger.warning(
                "retry:attempt_failed label=%s attempt=%d error=%s delay_s=%.2f",
                label,
                attempt + 1,
                e.__class__.__name__,
                delay,
            )
            await sleep(delay)
            attempt += 1


__all__ = ["DEFAULT_BASE_DELAY", "DEFAULT_MAX_RETRIES", "retry_async"]
