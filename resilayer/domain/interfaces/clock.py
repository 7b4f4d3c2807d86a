"""Interface for time sources.

Every component reads "now" and suspends through a Clock so that TTLs,
windows and backoff delays can be driven deterministically in tests.
"""

import abc


class Clock(abc.ABC):
    """Abstract Base Class for reading time and waiting."""

    @abc.abstractmethod
    def now(self) -> float:
        """Returns a monotonic reading in seconds, used for durations and expiry."""
        pass

    @abc.abstractmethod
    def wall_time(self) -> float:
        """Returns the wall-clock time in epoch seconds, used for record timestamps."""
        pass

    @abc.abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspends the calling coroutine without blocking the event loop.

        Args:
            seconds: How long to wait.
        """
        pass

    @abc.abstractmethod
    def sleep_blocking(self, seconds: float) -> None:
        """Blocks the calling thread only.

        Args:
            seconds: How long to wait.
        """
        pass
