"""Timing helpers that feed the metrics aggregator."""

import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from resilayer.domain.interfaces.clock import Clock
from resilayer.domain.models.common import TimerMetrics
from resilayer.infrastructure.clock.system_clock import SystemClock
from resilayer.infrastructure.monitoring.metrics import MetricsAggregator

logger = logging.getLogger(__name__)

T = TypeVar("T")

async def measure_async(
    operation: Callable[[], Awaitable[T]],
    name: str = "unnamed_operation",
    aggregator: Optional[MetricsAggregator] = None,
    clock: Optional[Clock] = None,
    labels: Optional[Dict[str, str]] = None,
) -> Tuple[T, float]:
    """Awaits an operation and measures how long it took.

    Records a metric (duration in ms) on the aggregator when one is given,
    flagged ``success=False`` if the operation raised. Errors propagate.

    Returns:
        Tuple of (result, duration in milliseconds).
    """
    clock = clock or SystemClock()
    start = clock.now()
    try:
        result = await operation()
    except Exception:
        duration_ms = (clock.now() - start) * 1000
        logger.debug(f"{name} (failed): {duration_ms:.2f}ms")
        if aggregator is not None:
            aggregator.observe(name, duration_ms, success=False, labels=labels)
        raise
    duration_ms = (clock.now() - start) * 1000
    logger.debug(f"{name}: {duration_ms:.2f}ms")
    if aggregator is not None:
        aggregator.observe(name, duration_ms, labels=labels)
    return result, duration_ms

class PerformanceTimer:
    """Stopwatch with laps, reading from a Clock. Values are in milliseconds."""

    def __init__(self, label: str = "timer", clock: Optional[Clock] = None):
        self.label = label
        self._clock = clock or SystemClock()
        self._start = self._clock.now()
        self._laps: List[float] = []

    def elapsed(self) -> float:
        return (self._clock.now() - self._start) * 1000

    def lap(self) -> float:
        """Records and returns the elapsed time since start (not since the last lap)."""
        elapsed = self.elapsed()
        self._laps.append(elapsed)
        return elapsed

    def reset(self) -> None:
        self._start = self._clock.now()
        self._laps = []

    def get_metrics(self) -> TimerMetrics:
        return TimerMetrics(
            label=self.label,
            total_elapsed=self.elapsed(),
            laps=list(self._laps),
            average_lap=sum(self._laps) / len(self._laps) if self._laps else 0.0,
        )
