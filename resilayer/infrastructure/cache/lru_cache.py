"""Concrete implementation of the in-memory Cache Store.

Keeps at most ``max_size`` entries, each with its own time-to-live, and
evicts the least recently used entry when a new key needs room. Expired
entries are removed lazily on access or proactively via ``cleanup()``.
"""

import logging
import threading
from collections import OrderedDict
from typing import Generic, Optional, TypeVar

from resilayer.domain.errors import ConfigurationError, InvalidKeyError, ValidationError
from resilayer.domain.interfaces.cache import CacheStore
from resilayer.domain.interfaces.clock import Clock
from resilayer.domain.models.common import CacheKey, CacheStats
from resilayer.domain.models.records import CacheEntry
from resilayer.infrastructure.clock.system_clock import SystemClock
from resilayer.infrastructure.config.settings import CacheConfig

logger = logging.getLogger(__name__)

V = TypeVar("V")

# Default Configuration Constants
DEFAULT_MAX_ITEMS = 100
DEFAULT_TTL_SECONDS = 5 * 60  # 5 minutes

def _is_valid_key(key: object) -> bool:
    return isinstance(key, str) and bool(key)

class LruTtlCacheStore(CacheStore[V], Generic[V]):
    """Bounded cache with per-entry TTL and LRU eviction.

    The OrderedDict's order is the recency order: the first key is the least
    recently used one. A single lock guards every structural mutation.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_ITEMS,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Optional[Clock] = None,
        name: str = "cache",
    ):
        """Initializes the cache store.

        Args:
            max_size: Maximum number of entries held at any time.
            default_ttl: Time-to-live in seconds used when set() gets no ttl.
            clock: Time source (defaults to the system clock).
            name: Label used in log messages and health reports.

        Raises:
            ConfigurationError: If either bound is not positive.
        """
        if max_size <= 0:
            raise ConfigurationError("Cache max_size must be greater than 0")
        if default_ttl <= 0:
            raise ConfigurationError("Cache default_ttl must be greater than 0")

        self.max_size = max_size
        self.default_ttl = default_ttl
        self.name = name
        self._clock = clock or SystemClock()
        self._entries: "OrderedDict[str, CacheEntry[V]]" = OrderedDict()
        self._lock = threading.Lock()
        self._hit_count = 0
        self._miss_count = 0
        self._eviction_count = 0

        logger.info(f"Cache '{name}' initialized: max_size={max_size}, default_ttl={default_ttl}s")

    @classmethod
    def from_config(cls, config: CacheConfig, clock: Optional[Clock] = None, name: str = "cache") -> "LruTtlCacheStore[V]":
        return cls(max_size=config.max_size, default_ttl=config.default_ttl, clock=clock, name=name)

    # --- CacheStore Interface Implementation ---

    def get(self, key: CacheKey) -> Optional[V]:
        """Retrieves a fresh item and marks it most recently used."""
        with self._lock:
            if not _is_valid_key(key):
                self._miss_count += 1
                return None

            entry = self._entries.get(key)
            if entry is None:
                self._miss_count += 1
                logger.debug(f"Cache '{self.name}' miss for key: {key}")
                return None

            now = self._clock.now()
            # Freshness before recency: an expired entry is never promoted
            if entry.is_expired(now):
                del self._entries[key]
                self._miss_count += 1
                logger.debug(f"Cache '{self.name}' entry expired for key: {key}. Removed.")
                return None

            entry.access_count += 1
            entry.last_accessed_at = now
            self._entries.move_to_end(key)
            self._hit_count += 1
            return entry.value

    def set(self, key: CacheKey, value: V, ttl: Optional[float] = None) -> None:
        """Stores an item at the most recently used position."""
        if not _is_valid_key(key):
            raise InvalidKeyError(key)
        if ttl is not None and ttl <= 0:
            raise ValidationError(f"Cache ttl must be greater than 0, got {ttl}")

        effective_ttl = ttl if ttl is not None else self.default_ttl
        with self._lock:
            now = self._clock.now()
            if key in self._entries:
                # Re-inserting moves the key to the most recently used end
                del self._entries[key]
            else:
                while len(self._entries) >= self.max_size:
                    evicted_key, _ = self._entries.popitem(last=False)
                    self._eviction_count += 1
                    logger.debug(f"Cache '{self.name}' evicted least recently used key: {evicted_key}")

            self._entries[key] = CacheEntry(
                value=value,
                inserted_at=now,
                ttl=effective_ttl,
                access_count=0,
                last_accessed_at=now,
            )

    def has(self, key: CacheKey) -> bool:
        """Checks freshness without changing recency or the hit/miss counters."""
        if not _is_valid_key(key):
            return False
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock.now()):
                del self._entries[key]
                return False
            return True

    def delete(self, key: CacheKey) -> bool:
        if not _is_valid_key(key):
            return False
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None:
                return False
            # An expired entry is gone either way but was not live
            return not entry.is_expired(self._clock.now())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hit_count = 0
            self._miss_count = 0
            self._eviction_count = 0
        logger.info(f"Cleared cache '{self.name}'.")

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> CacheStats:
        with self._lock:
            total_requests = self._hit_count + self._miss_count
            return CacheStats(
                size=len(self._entries),
                max_size=self.max_size,
                hit_count=self._hit_count,
                miss_count=self._miss_count,
                hit_rate=self._hit_count / total_requests if total_requests > 0 else 0.0,
                eviction_count=self._eviction_count,
            )

    def cleanup(self) -> int:
        """Removes expired entries, leaving the order of the rest untouched."""
        with self._lock:
            now = self._clock.now()
            expired_keys = [k for k, entry in self._entries.items() if entry.is_expired(now)]
            for k in expired_keys:
                del self._entries[k]
        if expired_keys:
            logger.debug(f"Cache '{self.name}' cleanup removed {len(expired_keys)} expired entries.")
        return len(expired_keys)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]
