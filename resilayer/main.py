"""Main entry point for the resilayer CLI.

Sets up the Typer CLI application, performs dependency injection
(Composition Root) and defines commands to inspect the effective
configuration and to drive a synthetic workload through the resilience
layer.
"""

import asyncio
import logging
import random
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from typing_extensions import Annotated

from resilayer.core.services.guarded_service import GuardedOperationService, derive_cache_key
from resilayer.core.services.health_service import HealthCheckService
from resilayer.core.services.maintenance import MaintenanceService
from resilayer.domain.errors import (
    ConfigurationError, RateLimitExceededError, RetryExhaustedError
)
from resilayer.domain.interfaces.clock import Clock
from resilayer.domain.models.common import CachePrefix, Identifier, MetricName
from resilayer.infrastructure.cache.lru_cache import LruTtlCacheStore
from resilayer.infrastructure.cli.display import SummaryDisplay
from resilayer.infrastructure.clock.system_clock import SystemClock
from resilayer.infrastructure.config.settings import (
    DEFAULT_CONFIG_FILE, ResilienceSettings, SettingsLoader
)
from resilayer.infrastructure.monitoring.logger_setup import setup_logging_from_config
from resilayer.infrastructure.monitoring.metrics import MetricsAggregator
from resilayer.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter
from resilayer.infrastructure.resilience.retry import RetryExecutor, RetryOptions

logger = logging.getLogger(__name__)

class TransientUpstreamError(Exception):
    """Simulated upstream failure used by the simulate command."""

# --- Dependency Injection Container (Manual) ---

def create_dependencies(settings: ResilienceSettings, clock: Optional[Clock] = None) -> Dict[str, Any]:
    """Creates and wires up the resilience components.

    This acts as the Composition Root. Every call builds fresh instances;
    nothing is shared at module level.
    """
    clock = clock or SystemClock()
    dependencies: Dict[str, Any] = {'clock': clock}
    dependencies['cache'] = LruTtlCacheStore.from_config(settings.cache, clock=clock, name="results")
    dependencies['rate_limiter'] = SlidingWindowRateLimiter.from_config(settings.rate_limit, clock=clock)
    dependencies['metrics'] = MetricsAggregator.from_config(settings.metrics, clock=clock)
    dependencies['retry_options'] = RetryOptions.from_config(settings.retry)
    dependencies['retry_executor'] = RetryExecutor(clock=clock, default_options=dependencies['retry_options'])
    dependencies['guarded_service'] = GuardedOperationService(
        cache=dependencies['cache'],
        rate_limiter=dependencies['rate_limiter'],
        retry_executor=dependencies['retry_executor'],
        metrics=dependencies['metrics'],
        clock=clock,
    )
    dependencies['maintenance'] = MaintenanceService(
        caches=[dependencies['cache']],
        rate_limiters=[dependencies['rate_limiter']],
        clock=clock,
    )
    dependencies['health'] = HealthCheckService.with_default_checks(
        cache=dependencies['cache'],
        rate_limiter=dependencies['rate_limiter'],
        metrics=dependencies['metrics'],
        clock=clock,
    )
    logger.info("Resilience dependencies initialized.")
    return dependencies

def load_app_settings(config_file: Optional[Path], overrides: Optional[Dict[str, Any]] = None) -> ResilienceSettings:
    loader = SettingsLoader(config_file=config_file or DEFAULT_CONFIG_FILE, overrides=overrides)
    loader.load_config()
    settings = loader.build_settings()
    setup_logging_from_config(settings.logging)
    return settings

# --- Simulation ---

async def run_simulation(
    dependencies: Dict[str, Any],
    requests: int,
    identifiers: int,
    distinct_keys: int,
    failure_rate: float,
    seed: Optional[int] = None,
) -> Counter:
    """Sends synthetic requests through the guarded service and counts outcomes."""
    rng = random.Random(seed)
    service: GuardedOperationService = dependencies['guarded_service']
    outcomes: Counter = Counter()

    for i in range(requests):
        identifier = Identifier(f"client-{rng.randrange(identifiers)}")
        item = rng.randrange(distinct_keys)
        cache_key = derive_cache_key(CachePrefix("item"), item=item)

        async def fetch_item(item: int = item) -> Dict[str, Any]:
            if rng.random() < failure_rate:
                raise TransientUpstreamError(f"upstream unavailable for item {item}")
            return {"item": item}

        try:
            await service.execute(identifier, cache_key, fetch_item, operation_name=MetricName("fetch_item"))
            outcomes["succeeded"] += 1
        except RateLimitExceededError:
            outcomes["rate_limited"] += 1
        except RetryExhaustedError as e:
            logger.debug(f"Request {i} exhausted retries: {e}")
            outcomes["failed"] += 1

    return outcomes

# --- Typer App Definition ---
app = typer.Typer(
    name="resilayer",
    help="resilayer: bounded caching, rate limiting, retries and metrics for request handlers.",
    add_completion=False,
)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to a YAML config file. Defaults to ~/.resilayer/config.yaml.")
]

@app.command(name="show-config")
def show_config_command(config: ConfigOption = None):
    """Show the effective configuration after merging all sources."""
    display = SummaryDisplay()
    try:
        settings = load_app_settings(config)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}", exc_info=True)
        display.display_error(f"Invalid configuration: {e}")
        raise typer.Exit(code=1)
    display.display_settings(settings.as_dict())

@app.command()
def simulate(
    requests: Annotated[int, typer.Option("--requests", "-n", min=1, help="Number of synthetic requests.")] = 50,
    identifiers: Annotated[int, typer.Option("--identifiers", min=1, help="Number of distinct callers.")] = 3,
    distinct_keys: Annotated[int, typer.Option("--keys", min=1, help="Number of distinct cache keys.")] = 10,
    failure_rate: Annotated[float, typer.Option("--failure-rate", min=0.0, max=1.0, help="Chance an upstream call fails.")] = 0.2,
    retry_delay: Annotated[float, typer.Option("--retry-delay", min=0.0, help="Base retry delay in seconds.")] = 0.01,
    seed: Annotated[Optional[int], typer.Option("--seed", help="Random seed for a reproducible run.")] = None,
    config: ConfigOption = None,
):
    """Drive a synthetic flaky workload through the resilience layer and report."""
    display = SummaryDisplay()
    try:
        settings = load_app_settings(config, overrides={'retry.retry_delay': retry_delay})
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}", exc_info=True)
        display.display_error(f"Invalid configuration: {e}")
        raise typer.Exit(code=1)

    dependencies = create_dependencies(settings)
    display.display_info(f"Sending {requests} requests from {identifiers} callers over {distinct_keys} keys...")
    outcomes = asyncio.run(run_simulation(
        dependencies, requests, identifiers, distinct_keys, failure_rate, seed
    ))

    cleanup = dependencies['maintenance'].run_cleanup()
    health: HealthCheckService = dependencies['health']
    results = asyncio.run(health.run_all_checks())

    display.display_counters("Outcomes", {k: outcomes.get(k, 0) for k in ("succeeded", "rate_limited", "failed")})
    display.display_cache_stats(dependencies['cache'].stats(), title="Cache")
    display.display_metrics_summary(dependencies['metrics'].get_summary())
    display.display_counters("Cleanup", {
        "expired_entries": cleanup.expired_entries,
        "dropped_identifiers": cleanup.dropped_identifiers,
    })
    display.display_health(health.get_health_status(), results)

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()

if __name__ == "__main__":
    cli_entry_point()
