"""Bounded concurrency for remote catalog calls."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from common.config.config import SCAN_MAX_CONCURRENCY

T = TypeVar("T")


class ConcurrencyLimiter:
    """
    Caps the number of in-flight remote calls across one scan.

    Only wrap leaf remote calls with ``run``. Holding a slot while awaiting
    child tasks that also need a slot can starve the pool.
    """

    def __init__(self, max_concurrency: Optional[int] = None):
        limit = max_concurrency if max_concurrency is not None else SCAN_MAX_CONCURRENCY
        if limit < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {limit}")
        self.max_concurrency = limit
        self._semaphore = asyncio.Semaphore(limit)

    async def run(self, func: Callable[..., Awaitable[T]], *args) -> T:
        async with self._semaphore:
            return await func(*args)
