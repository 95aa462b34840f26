"""Fixed-interval request gate for rate-limited upstream APIs.

Callers queue on a lock (asyncio locks wake waiters in FIFO order) and each
dispatch waits until ``min_interval`` has elapsed since the previous one.
There is no burst allowance, priority or cancellation.
"""

import asyncio
import time
from typing import Awaitable, Callable


class RequestThrottle:
    """Serializes dispatches with a minimum delay between them."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_dispatch: float | None = None

    async def run(self, fn: Callable[[], Awaitable]):
        """Run ``fn`` once it is this caller's turn; returns its result."""
        async with self._lock:
            if self._last_dispatch is not None:
                wait = self._last_dispatch + self.min_interval - self._clock()
                if wait > 0:
                    await self._sleep(wait)
            self._last_dispatch = self._clock()
            return await fn()
