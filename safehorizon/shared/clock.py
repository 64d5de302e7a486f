"""
Time source and jitter generator shared by the resilience components.

Monotonic time drives breaker cooldowns; wall time stamps cache entries
and queued operations so they stay meaningful across restarts.
"""

import asyncio
import random
import time
from datetime import datetime, timezone
from typing import Optional


class Clock:
    """System clock. Tests substitute a manual implementation."""

    def monotonic(self) -> float:
        """Seconds from an arbitrary, never-decreasing origin."""
        return time.monotonic()

    def time(self) -> float:
        """Wall-clock seconds since the epoch."""
        return time.time()

    def now(self) -> datetime:
        """Current UTC datetime."""
        return datetime.fromtimestamp(self.time(), tz=timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class Jitter:
    """Bounded random jitter for retry delays."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def upto(self, upper_ms: int) -> int:
        """Uniform integer in ``[0, upper_ms)``; zero when the bound is empty."""
        if upper_ms <= 0:
            return 0
        return self._rng.randrange(upper_ms)


system_clock = Clock()
