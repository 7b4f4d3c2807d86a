"""Concrete Clock implementations."""

import asyncio
import logging
import time
from typing import List

from resilayer.domain.interfaces.clock import Clock

logger = logging.getLogger(__name__)

class SystemClock(Clock):
    """Clock backed by the interpreter's monotonic and wall clocks."""

    def now(self) -> float:
        return time.monotonic()

    def wall_time(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))

    def sleep_blocking(self, seconds: float) -> None:
        time.sleep(max(0.0, seconds))


class ManualClock(Clock):
    """Deterministic clock whose time only moves when told to.

    Sleeping advances the clock by the requested amount and records the
    delay in ``sleeps``, so backoff schedules can be asserted exactly.
    """

    def __init__(self, start: float = 0.0, wall_start: float = 1_700_000_000.0):
        self._now = start
        self._wall_offset = wall_start - start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self._now

    def wall_time(self) -> float:
        return self._now + self._wall_offset

    def advance(self, seconds: float) -> None:
        """Moves time forward.

        Raises:
            ValueError: If asked to move backwards.
        """
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards.")
        self._now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(max(0.0, seconds))
        # Still yield so other tasks get a turn, as a real sleep would.
        await asyncio.sleep(0)

    def sleep_blocking(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(max(0.0, seconds))
