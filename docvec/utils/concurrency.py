"""Bounded fan-out for provider calls.

The embedding generator splits large inputs into batches and sends them
concurrently; :func:`throttled_gather` caps how many batches are in flight
so a big document cannot flood a rate-limited provider.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

_T = TypeVar("_T")


async def throttled_gather(coros: list[Awaitable[_T]], semaphore: asyncio.Semaphore) -> list[_T]:
    """Await *coros* with at most ``semaphore`` of them running at once.

    Results keep input order.  The first exception propagates, as with
    ``asyncio.gather``.
    """

    async def _bounded(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    return list(await asyncio.gather(*(_bounded(c) for c in coros)))
