"""Health check service.

Runs registered checks, records their outcome and derives an overall
status: healthy when nothing fails, degraded when fewer than half of the
checks fail, unhealthy otherwise.
"""

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from resilayer.domain.interfaces.cache import CacheStore
from resilayer.domain.interfaces.clock import Clock
from resilayer.infrastructure.clock.system_clock import SystemClock
from resilayer.infrastructure.monitoring.metrics import MetricsAggregator
from resilayer.infrastructure.monitoring.timing import measure_async
from resilayer.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"

DEFAULT_MIN_HIT_RATE = 0.1
DEFAULT_MAX_ERROR_RATE = 0.5

@dataclass(frozen=True)
class CheckOutcome:
    """What a check function returns."""
    healthy: bool
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

@dataclass(frozen=True)
class HealthCheckResult:
    name: str
    status: str # 'pass' or 'fail'
    message: str
    timestamp: float
    duration_ms: float
    details: Dict[str, Any] = field(default_factory=dict)

CheckFunction = Callable[[], Union[CheckOutcome, Awaitable[CheckOutcome]]]

class HealthCheckService:
    """Registry and runner for health checks."""

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or SystemClock()
        self._checks: Dict[str, CheckFunction] = {}
        self._last_results: Dict[str, HealthCheckResult] = {}
        self._status = HEALTHY

    def register_check(self, name: str, check: CheckFunction) -> None:
        self._checks[name] = check

    async def run_all_checks(self) -> List[HealthCheckResult]:
        """Runs every check in registration order. A check that raises fails."""
        results: List[HealthCheckResult] = []
        for name, check in self._checks.items():
            try:
                outcome, duration_ms = await measure_async(
                    lambda check=check: _resolve(check), name, clock=self._clock
                )
            except Exception as e:
                logger.error(f"Health check '{name}' raised: {e}", exc_info=True)
                result = HealthCheckResult(
                    name=name,
                    status="fail",
                    message=f"Health check failed: {e}",
                    timestamp=self._clock.wall_time(),
                    duration_ms=0.0,
                    details={"error": repr(e)},
                )
            else:
                result = HealthCheckResult(
                    name=name,
                    status="pass" if outcome.healthy else "fail",
                    message=outcome.message,
                    timestamp=self._clock.wall_time(),
                    duration_ms=round(duration_ms, 3),
                    details=dict(outcome.details),
                )
            results.append(result)
            self._last_results[name] = result

        self._status = _overall_status(results)
        logger.info(f"Health checks complete: {self._status} ({len(results)} checks)")
        return results

    def get_health_status(self) -> str:
        return self._status

    def get_last_results(self) -> List[HealthCheckResult]:
        return list(self._last_results.values())

    @classmethod
    def with_default_checks(
        cls,
        cache: Optional[CacheStore] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        metrics: Optional[MetricsAggregator] = None,
        clock: Optional[Clock] = None,
        min_hit_rate: float = DEFAULT_MIN_HIT_RATE,
        max_error_rate: float = DEFAULT_MAX_ERROR_RATE,
    ) -> "HealthCheckService":
        """Builds a service with checks for whichever components are given."""
        service = cls(clock=clock)
        if cache is not None:
            service.register_check("cache", lambda: check_cache(cache, min_hit_rate))
        if rate_limiter is not None:
            service.register_check("rate_limiter", lambda: check_rate_limiter(rate_limiter))
        if metrics is not None:
            service.register_check("metrics", lambda: check_metrics(metrics, max_error_rate))
        return service

async def _resolve(check: CheckFunction) -> CheckOutcome:
    outcome = check()
    if inspect.isawaitable(outcome):
        outcome = await outcome
    return outcome

def _overall_status(results: List[HealthCheckResult]) -> str:
    if not results:
        return HEALTHY
    failed = sum(1 for r in results if r.status == "fail")
    if failed == 0:
        return HEALTHY
    if failed / len(results) < 0.5:
        return DEGRADED
    return UNHEALTHY

# --- Default checks ---

def check_cache(cache: CacheStore, min_hit_rate: float = DEFAULT_MIN_HIT_RATE) -> CheckOutcome:
    """Fails when the cache is full yet rarely hit (thrashing)."""
    stats = cache.stats()
    requests = stats["hit_count"] + stats["miss_count"]
    thrashing = stats["size"] >= stats["max_size"] and requests > 0 and stats["hit_rate"] < min_hit_rate
    if thrashing:
        message = f"Cache full with low hit rate: {stats['hit_rate']:.1%}"
    else:
        message = f"Cache usage normal: {stats['size']}/{stats['max_size']} entries, hit rate {stats['hit_rate']:.1%}"
    return CheckOutcome(healthy=not thrashing, message=message, details=dict(stats))

def check_rate_limiter(rate_limiter: SlidingWindowRateLimiter) -> CheckOutcome:
    tracked = rate_limiter.tracked_identifiers()
    return CheckOutcome(
        healthy=True,
        message=f"Tracking {tracked} identifiers",
        details={
            "tracked_identifiers": tracked,
            "max_requests": rate_limiter.max_requests,
            "window_seconds": rate_limiter.window_seconds,
        },
    )

def check_metrics(metrics: MetricsAggregator, max_error_rate: float = DEFAULT_MAX_ERROR_RATE) -> CheckOutcome:
    """Fails when the share of failed operations exceeds ``max_error_rate``."""
    summary = metrics.get_summary()
    error_rate = summary["error_rate"]
    healthy = error_rate <= max_error_rate
    message = (
        f"Error rate {error_rate:.1%} over {summary['total_operations']} operations"
        if healthy else
        f"High error rate: {error_rate:.1%} over {summary['total_operations']} operations"
    )
    return CheckOutcome(healthy=healthy, message=message, details=dict(summary))
