"""ScheduledTask: Runs a coroutine repeatedly on a swappable cadence.

The default cadence sleeps a fixed interval after each run (no drift
compensation). The first run waits for a warm-up window. Runs never
overlap; a stop request ends the loop at the next sleep.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Protocol

logger = logging.getLogger(__name__)


class Cadence(Protocol):
    """Decides how long to wait before the next run."""

    def next_delay(self, run_duration: float) -> float:
        """Seconds to wait after a run that took run_duration seconds."""
        ...


class FixedIntervalCadence:
    """Waits the same interval after every run."""

    def __init__(self, interval: float) -> None:
        self.interval = interval

    def next_delay(self, run_duration: float) -> float:
        return self.interval


class ScheduledTask:
    """Periodic runner with warm-up and cooperative stop.

    :ivar name: Task name for logging.
    :ivar cadence: Cadence deciding the delay between runs.
    :ivar warmup: Seconds to wait before the first run.
    :ivar stop_event: Set to stop the loop.
    """

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        cadence: Cadence,
        warmup: float = 10.0,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self.name = name
        self.func = func
        self.cadence = cadence
        self.warmup = warmup
        self.stop_event = stop_event or asyncio.Event()
        self.runs = 0

    def stop(self) -> None:
        """Request the loop to stop; a run in progress is not interrupted."""
        self.stop_event.set()

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    async def _sleep(self, seconds: float) -> bool:
        """Sleep unless stopped first.

        :returns: True if the stop event was set during the sleep.
        """
        if seconds <= 0:
            return self.stopped
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self.stop_event.wait(), timeout=seconds)
        return self.stopped

    async def run(self) -> None:
        """Run until stopped. Exceptions from a run are logged, not raised."""
        logger.info(f"[{self.name}] Starting in {self.warmup:.0f}s")
        if await self._sleep(self.warmup):
            return

        loop = asyncio.get_running_loop()
        while not self.stopped:
            started = loop.time()
            try:
                await self.func()
            except Exception as e:
                logger.error(f"[{self.name}] Run failed: {e}", exc_info=True)
            self.runs += 1

            delay = self.cadence.next_delay(loop.time() - started)
            logger.debug(f"[{self.name}] Next run in {delay:.0f}s")
            if await self._sleep(delay):
                break

        logger.info(f"[{self.name}] Stopped after {self.runs} runs")
