"""Defines common Value Objects used across the resilience components.

These objects represent simple values like cache keys, client identifiers
and metric names, plus the typed dictionaries returned by stats/summary
operations.
"""

from typing import NewType, Dict, List, TypedDict

# === Caching Context ===
CacheKey = NewType("CacheKey", str)              # Unique key for a cache entry
CachePrefix = NewType("CachePrefix", str)        # Prefix for categorizing cache keys (e.g., 'search')

# === Rate Limiting Context ===
Identifier = NewType("Identifier", str)          # Client / caller identity being rate limited

# === Metrics Context ===
MetricName = NewType("MetricName", str)          # Operation name a metric is recorded under

# --- Structured Data ---
class CacheStats(TypedDict):
    """Snapshot of a cache store's counters."""
    size: int
    max_size: int
    hit_count: int
    miss_count: int
    hit_rate: float
    eviction_count: int

class MetricsSummary(TypedDict):
    """Aggregates over the metrics currently retained."""
    total_operations: int
    average_response_time: float
    cache_hit_rate: float
    error_rate: float
    operation_counts: Dict[str, int]

class MetricStats(TypedDict):
    """Per-name numeric summary of recorded values."""
    count: int
    sum: float
    avg: float
    min: float
    max: float
    latest: float

class TimerMetrics(TypedDict):
    """Snapshot of a PerformanceTimer."""
    label: str
    total_elapsed: float
    laps: List[float]
    average_lap: float

class BackoffPolicy(TypedDict):
    """Value Object representing retry backoff configuration."""
    max_retries: int
    retry_delay: float
    exponential_backoff: bool
    max_delay: float
