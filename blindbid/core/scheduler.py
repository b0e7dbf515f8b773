"""
Polling scheduler.

Phase derivation and batch aggregation are pure; anything that needs to
happen "every N seconds" (refreshing an auction list, re-deriving phases
for display) is driven from here by the caller.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from blindbid.utils.logger import get_logger

logger = get_logger("scheduler")


class Ticker:
    """
    Runs an async callback every ``interval`` seconds until stopped.

    The first tick fires immediately. A callback that raises is logged
    and the ticker keeps going; cancellation stops it.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Awaitable[None]],
        name: str = "ticker",
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.callback = callback
        self.name = name
        self.ticks = 0
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start ticking in the background."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.debug(f"{self.name} started (every {self.interval}s)")

    async def stop(self) -> None:
        """Stop ticking and wait for the loop to exit."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.debug(f"{self.name} stopped after {self.ticks} ticks")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"{self.name} tick failed: {e}")
            self.ticks += 1
            await asyncio.sleep(self.interval)
