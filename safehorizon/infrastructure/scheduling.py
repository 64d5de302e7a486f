"""
Periodic background tasks.

Cache cleanup, connectivity probing, queue sync and health checks each run
on their own ``PeriodicTask`` so they can be stopped independently on
shutdown.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class PeriodicTask:
    """Run an async callback every ``interval_seconds`` until stopped."""

    def __init__(self, name: str, interval_seconds: float, callback: Callable[[], Awaitable[None]]):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Periodic task already started", task=self.name)
            return
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self.name}")
        logger.debug("Periodic task started", task=self.name, interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("Periodic task stopped", task=self.name)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self._callback()
            except Exception as e:
                # Keep ticking despite errors
                logger.error("Periodic task failed", task=self.name, error=str(e))
