"""
Background pull at a fixed interval.

The poller knows nothing about ledgers: it awaits a tick callable, logs
failures and sleeps. The sync flow provides the tick.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog


logger = structlog.get_logger(__name__)


class SyncPoller:
    def __init__(
        self,
        tick: Callable[[], Awaitable[object]],
        interval_seconds: float,
    ):
        self._tick = tick
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stopped = asyncio.Event()
        self.ticks = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> None:
        self.ticks += 1
        try:
            await self._tick()
        except Exception as e:
            # A failed pull must not stop the loop
            self.failures += 1
            logger.warning("sync_poll_failed", error=str(e), tick=self.ticks)

    async def run(self) -> None:
        self._stopped.clear()
        while not self._stopped.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue

    def start(self) -> asyncio.Task:
        if not self.running:
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        self._stopped.set()
        if self._task is not None:
            await self._task
            self._task = None
