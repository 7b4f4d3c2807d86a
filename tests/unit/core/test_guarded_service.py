import asyncio
from unittest.mock import MagicMock

import pytest

from resilayer.core.services.guarded_service import GuardedOperationService, derive_cache_key
from resilayer.domain.errors import RateLimitExceededError, RetryExhaustedError
from resilayer.domain.events.resilience_events import RequestRejected
from resilayer.domain.models.common import CachePrefix
from resilayer.infrastructure.resilience.retry import RetryOptions

class UpstreamError(Exception):
    pass

@pytest.fixture
def service(cache, rate_limiter, retry_executor, metrics, clock):
    return GuardedOperationService(
        cache=cache,
        rate_limiter=rate_limiter,
        retry_executor=retry_executor,
        metrics=metrics,
        retry_options=RetryOptions(max_retries=2, retry_delay=0.1),
        clock=clock,
    )

def make_operation(result="value", failures=0, duration=0.0, clock=None):
    calls = {"n": 0}

    async def operation():
        calls["n"] += 1
        if clock is not None and duration:
            await clock.sleep(duration)
        if calls["n"] <= failures:
            raise UpstreamError(f"attempt {calls['n']} failed")
        return result

    return operation, calls

def test_derive_cache_key_ignores_parameter_order():
    first = derive_cache_key(CachePrefix("user"), id=1, region="eu")
    second = derive_cache_key(CachePrefix("user"), region="eu", id=1)
    assert first == second
    assert first.startswith("user:")
    assert derive_cache_key(CachePrefix("user"), id=2, region="eu") != first

def test_miss_executes_and_caches(service, cache, metrics):
    operation, calls = make_operation()
    assert asyncio.run(service.execute("client", "k", operation, operation_name="load")) == "value"
    assert calls["n"] == 1
    assert cache.get("k") == "value"
    recorded = metrics.get_metrics("load")
    assert len(recorded) == 1
    assert recorded[0].cache_hit is False
    assert recorded[0].labels["outcome"] == "success"

def test_second_call_served_from_cache(service, metrics):
    operation, calls = make_operation()
    asyncio.run(service.execute("client", "k", operation, operation_name="load"))
    assert asyncio.run(service.execute("client", "k", operation, operation_name="load")) == "value"
    assert calls["n"] == 1
    assert metrics.get_cache_hit_rate("load") == pytest.approx(0.5)

def test_cached_result_honours_ttl(service, clock):
    operation, calls = make_operation()
    asyncio.run(service.execute("client", "k", operation, ttl=1.0))
    clock.advance(1.5)
    asyncio.run(service.execute("client", "k", operation, ttl=1.0))
    assert calls["n"] == 2

def test_use_cache_false_bypasses_cache(service, cache):
    operation, calls = make_operation()
    asyncio.run(service.execute("client", "k", operation, use_cache=False))
    asyncio.run(service.execute("client", "k", operation, use_cache=False))
    assert calls["n"] == 2
    assert cache.size() == 0

def test_none_result_is_not_cached(service, cache):
    operation, calls = make_operation(result=None)
    assert asyncio.run(service.execute("client", "k", operation)) is None
    assert cache.size() == 0

def test_rate_limited_caller_is_rejected(service, metrics):
    operation, calls = make_operation()
    for _ in range(3):
        asyncio.run(service.execute("client", None, operation, operation_name="load"))
    with pytest.raises(RateLimitExceededError) as exc_info:
        asyncio.run(service.execute("client", None, operation, operation_name="load"))
    assert calls["n"] == 3
    assert exc_info.value.identifier == "client"
    assert exc_info.value.retry_after == pytest.approx(1.0)
    assert exc_info.value.remaining == 0
    rejected = metrics.get_metrics("load")[-1]
    assert rejected.success is False
    assert rejected.labels["outcome"] == "rate_limited"

def test_rate_limit_checked_before_cache(service):
    operation, _ = make_operation()
    for _ in range(3):
        asyncio.run(service.execute("client", "k", operation))
    with pytest.raises(RateLimitExceededError):
        asyncio.run(service.execute("client", "k", operation))

def test_transient_failures_are_retried(service, clock, metrics):
    operation, calls = make_operation(failures=2)
    assert asyncio.run(service.execute("client", "k", operation, operation_name="load")) == "value"
    assert calls["n"] == 3
    assert clock.sleeps == [pytest.approx(0.1), pytest.approx(0.2)]
    assert metrics.get_metrics("load")[0].value == pytest.approx(300.0)

def test_exhausted_retries_record_failure(service, cache, metrics):
    operation, calls = make_operation(failures=10)
    with pytest.raises(RetryExhaustedError):
        asyncio.run(service.execute("client", "k", operation, operation_name="load"))
    assert calls["n"] == 3
    assert cache.size() == 0
    failed = metrics.get_metrics("load")[0]
    assert failed.success is False
    assert failed.labels["error_type"] == "RetryExhaustedError"
    assert metrics.get_error_rate("load") == 1.0

def test_operation_duration_recorded(service, clock, metrics):
    operation, _ = make_operation(duration=0.05, clock=clock)
    asyncio.run(service.execute("client", "k", operation, operation_name="load"))
    assert metrics.get_average_response_time("load") == pytest.approx(50.0)

def test_rejection_is_sent_to_event_sink(cache, rate_limiter, retry_executor, metrics, clock):
    sink = MagicMock()
    service = GuardedOperationService(
        cache=cache, rate_limiter=rate_limiter, retry_executor=retry_executor,
        metrics=metrics, clock=clock, event_sink=sink,
    )
    operation, _ = make_operation()
    for _ in range(3):
        asyncio.run(service.execute("client", None, operation, operation_name="load"))
    sink.assert_not_called()

    clock.advance(0.25)
    with pytest.raises(RateLimitExceededError):
        asyncio.run(service.execute("client", None, operation, operation_name="load"))

    event = sink.call_args.args[0]
    assert isinstance(event, RequestRejected)
    assert event.identifier == "client"
    assert event.operation == "load"
    assert event.retry_after == pytest.approx(0.75)

def test_failing_event_sink_does_not_hide_rejection(cache, rate_limiter, retry_executor, metrics, clock):
    sink = MagicMock(side_effect=RuntimeError("sink down"))
    service = GuardedOperationService(
        cache=cache, rate_limiter=rate_limiter, retry_executor=retry_executor,
        metrics=metrics, clock=clock, event_sink=sink,
    )
    operation, _ = make_operation()
    for _ in range(3):
        asyncio.run(service.execute("client", None, operation))
    with pytest.raises(RateLimitExceededError):
        asyncio.run(service.execute("client", None, operation))
    sink.assert_called_once()
