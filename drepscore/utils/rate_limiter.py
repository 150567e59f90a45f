"""
Async rate limiter for Koios request spacing.

The vote fan-out is already bounded by a semaphore; this adds an optional
minimum interval between request starts per API name, shared by every
coroutine of the event loop.

Usage:
    limiter = AsyncRateLimiter()
    await limiter.wait("koios", delay=0.2)
    response = await client.get(url)
"""

import asyncio
import time
from typing import Dict


class AsyncRateLimiter:
    """
    Per-API minimum spacing between requests.

    Each API name has its own lock, so waiting on one API never delays another.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._last_request: Dict[str, float] = {}

    def _get_lock(self, api: str) -> asyncio.Lock:
        if api not in self._locks:
            self._locks[api] = asyncio.Lock()
            self._last_request[api] = 0.0
        return self._locks[api]

    async def wait(self, api: str, delay: float) -> float:
        """
        Wait until it's safe to make a request to the given API.

        Args:
            api: API identifier (e.g., "koios")
            delay: Minimum seconds between requests (<= 0 disables spacing)

        Returns:
            Actual time waited (0 if no wait needed)
        """
        if delay <= 0:
            return 0.0

        async with self._get_lock(api):
            elapsed = time.monotonic() - self._last_request[api]
            wait_time = delay - elapsed if elapsed < delay else 0.0
            if wait_time:
                await asyncio.sleep(wait_time)
            self._last_request[api] = time.monotonic()
            return wait_time
