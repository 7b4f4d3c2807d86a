"""Interface for caching mechanisms.

Defines the contract for a bounded key/value store with per-entry TTL,
as consumed by request-handling code.
"""

import abc
from typing import Generic, Optional, TypeVar

# Import relevant domain models
from ..models.common import CacheKey, CacheStats

V = TypeVar("V")

class CacheStore(abc.ABC, Generic[V]):
    """Abstract Base Class for caching operations."""

    @abc.abstractmethod
    def get(self, key: CacheKey) -> Optional[V]:
        """Retrieves an item from the cache.

        Args:
            key: The cache key to retrieve.

        Returns:
            The cached item if found and not expired, otherwise None.
            An empty key is a miss, never an error.
        """
        pass

    @abc.abstractmethod
    def set(self, key: CacheKey, value: V, ttl: Optional[float] = None) -> None:
        """Stores an item in the cache.

        Args:
            key: The cache key to store the item under.
            value: The item to store.
            ttl: Time-to-live in seconds (uses the store default if None).

        Raises:
            InvalidKeyError: If the key is empty.
        """
        pass

    @abc.abstractmethod
    def has(self, key: CacheKey) -> bool:
        """Checks freshness without affecting recency or counters."""
        pass

    @abc.abstractmethod
    def delete(self, key: CacheKey) -> bool:
        """Deletes an item. Returns True if a live entry was removed."""
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        """Clears all items and resets the counters."""
        pass

    @abc.abstractmethod
    def size(self) -> int:
        pass

    @abc.abstractmethod
    def stats(self) -> CacheStats:
        pass

    @abc.abstractmethod
    def cleanup(self) -> int:
        """Removes every expired entry. Returns the number removed."""
        pass
