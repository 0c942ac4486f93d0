"""
Simple rate limiter for judgment capability calls.

Tier 1: 50 requests per minute.
We enforce a minimum gap between calls to stay under the limit. Calls run
concurrently on one event loop, so the lock is an asyncio lock.
"""

import asyncio
import time


class RateLimiter:
    """Coroutine-safe rate limiter that enforces minimum gap between API calls.

    One instance per capability client; the asyncio lock binds to the event
    loop that first contends for it.
    """

    def __init__(self, requests_per_minute: int = 45):
        self.min_gap = 60.0 / requests_per_minute  # seconds between calls
        self._last_call = 0.0
        self._lock = asyncio.Lock()

    async def wait(self):
        """Sleep until it's safe to make the next API call."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_call
            if elapsed < self.min_gap:
                await asyncio.sleep(self.min_gap - elapsed)
            self._last_call = time.monotonic()
