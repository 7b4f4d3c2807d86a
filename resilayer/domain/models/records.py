"""Records held or produced by the resilience components."""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, TypeVar

from .common import MetricName

V = TypeVar("V")

@dataclass
class CacheEntry(Generic[V]):
    """Internal representation of a cache entry with its freshness data.

    Owned by exactly one cache store and only mutated by its get/set.
    """
    value: V
    inserted_at: float # Clock.now() at insertion
    ttl: float # Seconds the entry stays fresh
    access_count: int = 0
    last_accessed_at: float = 0.0

    @property
    def expires_at(self) -> float:
        return self.inserted_at + self.ttl

    def is_expired(self, now: float) -> bool:
        """An entry is fresh up to and including ``inserted_at + ttl``."""
        return now > self.expires_at

@dataclass(frozen=True)
class MetricRecord:
    """A single named numeric observation.

    ``value`` is a response time in milliseconds for operation metrics.
    """
    name: MetricName
    value: float
    timestamp: float # Wall-clock epoch seconds
    labels: Dict[str, str] = field(default_factory=dict)
    cache_hit: bool = False
    success: bool = True

@dataclass(frozen=True)
class RetryAttempt:
    """Diagnostic record of one failed attempt inside a retry loop."""
    attempt_number: int # 1-based
    error: BaseException
    delay_before_next_attempt: Optional[float] = None # None for the final attempt

    def describe(self) -> Dict[str, Any]:
        return {
            "attempt": self.attempt_number,
            "error_type": type(self.error).__name__,
            "error": str(self.error),
            "delay": self.delay_before_next_attempt,
        }
