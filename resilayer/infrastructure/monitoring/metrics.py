"""Rolling metrics aggregator.

Keeps a count-bounded history of MetricRecords (oldest dropped first once
``max_records`` is reached) and derives averages, hit rates and per-name
counts over whatever is currently retained.
"""

import logging
import threading
from collections import Counter, deque
from dataclasses import replace
from typing import Deque, Dict, Iterable, List, Optional

from resilayer.domain.errors import ConfigurationError
from resilayer.domain.interfaces.clock import Clock
from resilayer.domain.models.common import MetricName, MetricStats, MetricsSummary
from resilayer.domain.models.records import MetricRecord
from resilayer.infrastructure.clock.system_clock import SystemClock
from resilayer.infrastructure.config.settings import MetricsConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECORDS = 1000

def _ratio(part: int, whole: int) -> float:
    return part / whole if whole > 0 else 0.0

class MetricsAggregator:
    """Thread-safe ring buffer of metric records with summary queries."""

    def __init__(self, max_records: int = DEFAULT_MAX_RECORDS, clock: Optional[Clock] = None):
        if max_records <= 0:
            raise ConfigurationError("Metrics max_records must be greater than 0")
        self.max_records = max_records
        self._clock = clock or SystemClock()
        self._records: Deque[MetricRecord] = deque(maxlen=max_records)
        self._lock = threading.Lock()
        logger.info(f"MetricsAggregator initialized: max_records={max_records}")

    @classmethod
    def from_config(cls, config: MetricsConfig, clock: Optional[Clock] = None) -> "MetricsAggregator":
        return cls(max_records=config.max_records, clock=clock)

    def record(self, metric: MetricRecord) -> None:
        metric = replace(metric, labels=dict(metric.labels))
        with self._lock:
            # deque(maxlen=...) drops from the left, i.e. the oldest record
            self._records.append(metric)

    def observe(
        self,
        name: MetricName,
        value: float,
        cache_hit: bool = False,
        success: bool = True,
        labels: Optional[Dict[str, str]] = None,
    ) -> MetricRecord:
        """Builds a record stamped with the current wall time and records it."""
        metric = MetricRecord(
            name=name,
            value=float(value),
            timestamp=self._clock.wall_time(),
            labels=dict(labels or {}),
            cache_hit=cache_hit,
            success=success,
        )
        self.record(metric)
        return metric

    def _select(self, name: Optional[MetricName]) -> List[MetricRecord]:
        with self._lock:
            if name is None:
                return list(self._records)
            return [m for m in self._records if m.name == name]

    def get_metrics(self, name: Optional[MetricName] = None) -> List[MetricRecord]:
        """Returns a copy of the retained records, optionally filtered by name."""
        return [replace(m, labels=dict(m.labels)) for m in self._select(name)]

    def get_average_response_time(self, name: Optional[MetricName] = None) -> float:
        relevant = self._select(name)
        if not relevant:
            return 0.0
        return sum(m.value for m in relevant) / len(relevant)

    def get_cache_hit_rate(self, name: Optional[MetricName] = None) -> float:
        relevant = self._select(name)
        return _ratio(sum(1 for m in relevant if m.cache_hit), len(relevant))

    def get_error_rate(self, name: Optional[MetricName] = None) -> float:
        relevant = self._select(name)
        return _ratio(sum(1 for m in relevant if not m.success), len(relevant))

    def get_operation_counts(self) -> Dict[str, int]:
        return dict(Counter(m.name for m in self._select(None)))

    def get_metric_stats(self, name: Optional[MetricName] = None) -> Dict[MetricName, MetricStats]:
        """Per-name count/sum/avg/min/max/latest over the retained records."""
        grouped: Dict[MetricName, List[float]] = {}
        for m in self._select(name):
            grouped.setdefault(m.name, []).append(m.value)
        return {metric_name: _stats_for(values) for metric_name, values in grouped.items()}

    def get_summary(self) -> MetricsSummary:
        # One snapshot so every figure describes the same record set
        snapshot = self._select(None)
        total = len(snapshot)
        return MetricsSummary(
            total_operations=total,
            average_response_time=sum(m.value for m in snapshot) / total if total else 0.0,
            cache_hit_rate=_ratio(sum(1 for m in snapshot if m.cache_hit), total),
            error_rate=_ratio(sum(1 for m in snapshot if not m.success), total),
            operation_counts=dict(Counter(m.name for m in snapshot)),
        )

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
        logger.info("Cleared metrics.")

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

def _stats_for(values: Iterable[float]) -> MetricStats:
    values = list(values)
    total = sum(values)
    return MetricStats(
        count=len(values),
        sum=total,
        avg=round(total / len(values), 2),
        min=min(values),
        max=max(values),
        latest=values[-1],
    )
