"""Maintenance service: proactive cleanup of caches and rate limiters.

Cleanup is never automatic inside the components. The host either calls
``run_cleanup()`` on its own schedule or runs ``run_periodically()`` as a
background task.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from resilayer.domain.interfaces.cache import CacheStore
from resilayer.domain.interfaces.clock import Clock
from resilayer.infrastructure.clock.system_clock import SystemClock
from resilayer.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class CleanupReport:
    expired_entries: int
    dropped_identifiers: int

class MaintenanceService:
    """Runs cleanup over every registered cache and rate limiter."""

    def __init__(
        self,
        caches: Sequence[CacheStore] = (),
        rate_limiters: Sequence[SlidingWindowRateLimiter] = (),
        clock: Optional[Clock] = None,
    ):
        self.caches = list(caches)
        self.rate_limiters = list(rate_limiters)
        self._clock = clock or SystemClock()

    def run_cleanup(self) -> CleanupReport:
        expired = sum(cache.cleanup() for cache in self.caches)
        dropped = sum(limiter.cleanup() for limiter in self.rate_limiters)
        report = CleanupReport(expired_entries=expired, dropped_identifiers=dropped)
        logger.info(f"Cleanup finished: {expired} expired cache entries, {dropped} idle identifiers.")
        return report

    async def run_periodically(self, interval: float, stop_event: asyncio.Event) -> int:
        """Runs cleanup every ``interval`` seconds until ``stop_event`` is set.

        Returns:
            The number of cleanup passes performed.
        """
        if interval <= 0:
            raise ValueError("Cleanup interval must be positive.")
        passes = 0
        while not stop_event.is_set():
            await self._clock.sleep(interval)
            if stop_event.is_set():
                break
            self.run_cleanup()
            passes += 1
        logger.debug(f"Periodic cleanup stopped after {passes} passes.")
        return passes
