"""Concurrent await with explicit failure semantics.

A small counterpart to ``p_map`` for coroutines:

- ``stop_on_error=True`` (default): the first failure propagates as soon as it
  happens. Sibling tasks are not cancelled; they run to completion in the
  background and their results are discarded.
- ``stop_on_error=False``: wait for everything, then raise an
  ``ExceptionGroup`` of all failures.

Results come back in input order either way.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any


async def gather_all(*aws: Awaitable[Any], stop_on_error: bool = True) -> list[Any]:
    """Await ``aws`` concurrently and return their results in order."""

    if stop_on_error:
        return list(await asyncio.gather(*aws))

    results = await asyncio.gather(*aws, return_exceptions=True)
    errors = [r for r in results if isinstance(r, Exception)]
    if errors:
        raise ExceptionGroup("gather_all: one or more awaitables failed", errors)
    return list(results)


__all__ = ["gather_all"]
