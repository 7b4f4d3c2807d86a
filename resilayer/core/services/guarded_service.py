"""Guarded operation service.

Runs an expensive operation the way request handlers should: check the
caller's rate limit, consult the cache, execute through the retry executor
on a miss, store the result, and record a metric for every outcome.
"""

import hashlib
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from resilayer.domain.errors import RateLimitExceededError
from resilayer.domain.events.resilience_events import DomainEvent, RequestRejected
from resilayer.domain.interfaces.cache import CacheStore
from resilayer.domain.interfaces.clock import Clock
from resilayer.domain.models.common import CacheKey, CachePrefix, Identifier, MetricName
from resilayer.infrastructure.clock.system_clock import SystemClock
from resilayer.infrastructure.monitoring.metrics import MetricsAggregator
from resilayer.infrastructure.monitoring.timing import PerformanceTimer
from resilayer.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter
from resilayer.infrastructure.resilience.retry import RetryExecutor, RetryOptions

logger = logging.getLogger(__name__)

T = TypeVar("T")

def derive_cache_key(prefix: CachePrefix, **params: Any) -> CacheKey:
    """Builds a stable cache key from a prefix and keyword parameters.

    Parameter order does not matter; values are rendered with repr().
    """
    param_string = "&".join(f"{k}={params[k]!r}" for k in sorted(params))
    digest = hashlib.sha256(param_string.encode()).hexdigest()
    return CacheKey(f"{prefix}:{digest}")

class GuardedOperationService:
    """Applies rate limiting, caching, retries and metrics around operations."""

    def __init__(
        self,
        cache: CacheStore,
        rate_limiter: SlidingWindowRateLimiter,
        retry_executor: RetryExecutor,
        metrics: MetricsAggregator,
        retry_options: Optional[RetryOptions] = None,
        clock: Optional[Clock] = None,
        event_sink: Optional[Callable[[DomainEvent], Any]] = None,
    ):
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.retry_executor = retry_executor
        self.metrics = metrics
        self.retry_options = retry_options
        self._clock = clock or SystemClock()
        self.event_sink = event_sink

    async def execute(
        self,
        identifier: Identifier,
        cache_key: Optional[CacheKey],
        operation: Callable[[], Awaitable[T]],
        ttl: Optional[float] = None,
        operation_name: MetricName = MetricName("operation"),
        use_cache: bool = True,
    ) -> T:
        """Executes an operation on behalf of ``identifier``.

        Args:
            identifier: Caller identity used for rate limiting.
            cache_key: Key for the result (None disables caching for this call).
            operation: Zero-argument async callable doing the expensive work.
            ttl: Cache TTL for the stored result (store default if None).
            operation_name: Name the metrics are recorded under.
            use_cache: Whether to read from and write to the cache.

        Returns:
            The cached or freshly computed result.

        Raises:
            RateLimitExceededError: If the identifier is over its limit.
            RetryExhaustedError: If the operation kept failing.
            Exception: A non-retryable error from the operation.
        """
        labels: Dict[str, str] = {"identifier": identifier}
        timer = PerformanceTimer(label=operation_name, clock=self._clock)

        # 1. Admission
        if not self.rate_limiter.is_allowed(identifier):
            retry_after = self.rate_limiter.get_reset_time(identifier)
            event = RequestRejected(identifier=identifier, retry_after=retry_after, operation=operation_name)
            logger.warning(f"Rejected {operation_name} for '{identifier}': rate limited for {retry_after:.2f}s")
            self._dispatch_event(event)
            self.metrics.observe(
                operation_name, timer.elapsed(), success=False,
                labels={**labels, "outcome": "rate_limited"},
            )
            raise RateLimitExceededError(identifier, retry_after, remaining=0)

        caching = use_cache and bool(cache_key)

        # 2. Cache lookup
        if caching:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit for {operation_name}: {cache_key}")
                self.metrics.observe(
                    operation_name, timer.elapsed(), cache_hit=True,
                    labels={**labels, "outcome": "cache_hit"},
                )
                return cached

        # 3. Execute with retries
        try:
            result = await self.retry_executor.retry_operation(
                operation, self.retry_options, operation_name=operation_name
            )
        except Exception as e:
            self.metrics.observe(
                operation_name, timer.elapsed(), success=False,
                labels={**labels, "outcome": "error", "error_type": type(e).__name__},
            )
            raise

        # 4. Store and record
        if caching and result is not None:
            self.cache.set(cache_key, result, ttl)
        self.metrics.observe(
            operation_name, timer.elapsed(),
            labels={**labels, "outcome": "success"},
        )
        return result

    def _dispatch_event(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self.event_sink is None:
            return
        try:
            self.event_sink(event)
        except Exception as e:
            logger.warning(f"Event sink raised {type(e).__name__}: {e}", exc_info=True)
