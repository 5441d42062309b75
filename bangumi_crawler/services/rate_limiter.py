# bangumi_crawler/services/rate_limiter.py

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

from ..config import DEFAULT_PROBE_INTERVAL_SECONDS


class RateLimiter:
    """
    Single-slot pacer for endpoints with an unpublished rate limit.

    ``acquire()`` blocks until ``min_interval`` seconds have passed since the
    previous holder called ``release()``, and only one holder is admitted at a
    time. Use it as an async context manager around each outbound request::

        async with limiter:
            await fetch_json(url)
    """

    def __init__(
        self,
        min_interval: float = DEFAULT_PROBE_INTERVAL_SECONDS,
        *,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")
        self.min_interval = min_interval
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._lock = asyncio.Lock()
        self._last_release: float | None = None

    async def acquire(self) -> None:
        await self._lock.acquire()
        try:
            if self._last_release is None:
                return
            remaining = self._last_release + self.min_interval - self._clock()
            if remaining > 0:
                await self._sleep(remaining)
        except BaseException:
            self._lock.release()
            raise

    def release(self) -> None:
        self._last_release = self._clock()
        self._lock.release()

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
