"""Implementation of a per-identifier rate limiter.

Controls how often each caller may make requests using a sliding window:
a request is admitted when fewer than ``max_requests`` timestamps of that
identifier fall inside the last ``window_seconds``.
"""

import logging
import threading
from collections import deque
from typing import Deque, Dict, Optional

from resilayer.domain.errors import ConfigurationError
from resilayer.domain.interfaces.clock import Clock
from resilayer.domain.models.common import Identifier
from resilayer.infrastructure.clock.system_clock import SystemClock
from resilayer.infrastructure.config.settings import RateLimitConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 100 # Max 100 requests...
DEFAULT_WINDOW_SECONDS = 60.0 # ...per 60 seconds

class SlidingWindowRateLimiter:
    """Sliding window rate limiter keyed by caller identifier."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Optional[Clock] = None,
    ):
        """Initializes the rate limiter.

        Args:
            max_requests: Maximum number of requests allowed per identifier in the window.
            window_seconds: The duration of the sliding window in seconds.
            clock: Time source (defaults to the system clock).
        """
        if max_requests <= 0 or window_seconds <= 0:
            raise ConfigurationError("Max requests and window must be positive.")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock or SystemClock()
        # Use a deque per identifier to efficiently drop timestamps from the old end
        self._requests: Dict[Identifier, Deque[float]] = {}
        self._lock = threading.Lock()
        logger.info(f"RateLimiter initialized: Max {self.max_requests} requests / {self.window_seconds} seconds.")

    @classmethod
    def from_config(cls, config: RateLimitConfig, clock: Optional[Clock] = None) -> "SlidingWindowRateLimiter":
        return cls(max_requests=config.max_requests, window_seconds=config.window_seconds, clock=clock)

    def _prune(self, identifier: Identifier, now: float) -> Optional[Deque[float]]:
        """Removes timestamps that left the window. Caller must hold the lock.

        Drops the identifier entirely once its sequence is empty.
        """
        timestamps = self._requests.get(identifier)
        if timestamps is None:
            return None
        while timestamps and now - timestamps[0] >= self.window_seconds:
            timestamps.popleft()
        if not timestamps:
            del self._requests[identifier]
            return None
        return timestamps

    def is_allowed(self, identifier: Identifier) -> bool:
        """Admits and records a request if the identifier is under its limit."""
        with self._lock:
            now = self._clock.now()
            timestamps = self._prune(identifier, now)
            if timestamps is None:
                timestamps = deque()
                self._requests[identifier] = timestamps
            elif len(timestamps) >= self.max_requests:
                logger.debug(f"Rate limit reached for '{identifier}' ({len(timestamps)}/{self.max_requests}).")
                return False
            timestamps.append(now)
            return True

    def get_remaining(self, identifier: Identifier) -> int:
        """Number of requests the identifier may still make in the current window."""
        with self._lock:
            timestamps = self._prune(identifier, self._clock.now())
            used = len(timestamps) if timestamps is not None else 0
            return max(0, self.max_requests - used)

    def get_reset_time(self, identifier: Identifier) -> float:
        """Seconds until the oldest recorded request leaves the window (0 if none)."""
        with self._lock:
            now = self._clock.now()
            timestamps = self._prune(identifier, now)
            if timestamps is None:
                return 0.0
            return max(0.0, timestamps[0] + self.window_seconds - now)

    async def wait_for_permission(self, identifier: Identifier) -> None:
        """Waits until a request is permitted according to the rate limit."""
        while True:
            with self._lock:
                now = self._clock.now()
                timestamps = self._prune(identifier, now)
                if timestamps is None or len(timestamps) < self.max_requests:
                    if timestamps is None:
                        timestamps = deque()
                        self._requests[identifier] = timestamps
                    timestamps.append(now)
                    logger.debug(f"Rate limit permission granted for '{identifier}'.")
                    return
                wait_time = max(0.0, timestamps[0] + self.window_seconds - now)

            # Sleep outside the lock, then re-check
            logger.debug(f"Rate limit reached for '{identifier}'. Waiting for {wait_time:.2f} seconds.")
            await self._clock.sleep(wait_time)

    def cleanup(self) -> int:
        """Drops identifiers with no requests left in the window. Returns how many."""
        with self._lock:
            now = self._clock.now()
            before = len(self._requests)
            for identifier in list(self._requests):
                self._prune(identifier, now)
            dropped = before - len(self._requests)
        if dropped:
            logger.debug(f"RateLimiter cleanup dropped {dropped} idle identifiers.")
        return dropped

    def tracked_identifiers(self) -> int:
        """Number of identifiers currently holding timestamps (may include stale ones)."""
        with self._lock:
            return len(self._requests)

    def reset(self, identifier: Optional[Identifier] = None) -> None:
        """Forgets one identifier, or every identifier when none is given."""
        with self._lock:
            if identifier is None:
                self._requests.clear()
            else:
                self._requests.pop(identifier, None)
