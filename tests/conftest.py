import os

import pytest
from typer.testing import CliRunner

from resilayer.infrastructure.cache.lru_cache import LruTtlCacheStore
from resilayer.infrastructure.clock.system_clock import ManualClock
from resilayer.infrastructure.monitoring.metrics import MetricsAggregator
from resilayer.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter
from resilayer.infrastructure.resilience.retry import RetryExecutor

@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()

@pytest.fixture
def clock():
    """A manually driven clock starting at t=0."""
    return ManualClock()

@pytest.fixture
def cache(clock):
    return LruTtlCacheStore(max_size=3, default_ttl=10.0, clock=clock)

@pytest.fixture
def rate_limiter(clock):
    return SlidingWindowRateLimiter(max_requests=3, window_seconds=1.0, clock=clock)

@pytest.fixture
def retry_executor(clock):
    return RetryExecutor(clock=clock)

@pytest.fixture
def metrics(clock):
    return MetricsAggregator(max_records=100, clock=clock)

@pytest.fixture(autouse=True)
def isolate_config_env(monkeypatch, tmp_path):
    """Keeps the developer's RESILAYER_* variables and .env files out of tests."""
    for key in list(os.environ):
        if key.startswith("RESILAYER_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
