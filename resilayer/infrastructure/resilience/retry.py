"""Service for executing operations with automatic retries.

Implements exponential backoff for transient failures. The caller decides
which errors are worth retrying via ``retry_condition``; anything else
propagates on first occurrence. When every attempt fails a
``RetryExhaustedError`` carrying the full attempt history is raised.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from resilayer.domain.errors import ConfigurationError, RetryExhaustedError
from resilayer.domain.events.resilience_events import (
    DomainEvent, OperationFailed, OperationSucceeded, RetryScheduled
)
from resilayer.domain.interfaces.clock import Clock
from resilayer.domain.models.common import BackoffPolicy
from resilayer.domain.models.records import RetryAttempt
from resilayer.infrastructure.clock.system_clock import SystemClock
from resilayer.infrastructure.config.settings import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

def _always_retry(error: BaseException) -> bool:
    return True

@dataclass(frozen=True)
class RetryOptions:
    """Backoff policy and hooks for a single retry_operation call.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1).
        retry_delay: Base delay in seconds.
        exponential_backoff: Double the delay after every failed attempt.
        retry_condition: Returns False for errors that must not be retried.
        on_retry: Observer called with (attempt_number, error) before each wait.
        max_delay: Upper bound for any single delay in seconds.
    """
    max_retries: int = 3
    retry_delay: float = 1.0
    exponential_backoff: bool = True
    retry_condition: Callable[[BaseException], bool] = _always_retry
    on_retry: Optional[Callable[[int, BaseException], Any]] = None
    max_delay: float = 60.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.retry_delay < 0:
            raise ConfigurationError(f"retry_delay must be >= 0, got {self.retry_delay}")
        if self.max_delay < 0:
            raise ConfigurationError(f"max_delay must be >= 0, got {self.max_delay}")

    @classmethod
    def from_config(cls, config: RetryConfig, **hooks: Any) -> "RetryOptions":
        return cls(
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            exponential_backoff=config.exponential_backoff,
            max_delay=config.max_delay,
            **hooks,
        )

    def delay_for(self, attempt_number: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        if self.exponential_backoff:
            try:
                delay = math.ldexp(self.retry_delay, attempt_number - 1)
            except OverflowError:
                # Past float range, so well beyond any max_delay
                delay = self.max_delay
        else:
            delay = self.retry_delay
        return min(delay, self.max_delay)

    def to_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            exponential_backoff=self.exponential_backoff,
            max_delay=self.max_delay,
        )

class RetryExecutor:
    """Runs fallible operations with bounded retries and backoff.

    Holds no locks: waiting between attempts happens entirely in the
    caller's context through the injected clock.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        default_options: Optional[RetryOptions] = None,
        event_sink: Optional[Callable[[DomainEvent], Any]] = None,
    ):
        """Initializes the RetryExecutor.

        Args:
            clock: Time source used for the delays (defaults to the system clock).
            default_options: Options used when a call passes none.
            event_sink: Optional callable receiving retry/outcome domain events.
        """
        self._clock = clock or SystemClock()
        self.default_options = default_options or RetryOptions()
        self.event_sink = event_sink
        logger.info(
            f"RetryExecutor initialized: max_retries={self.default_options.max_retries}, "
            f"retry_delay={self.default_options.retry_delay}s, "
            f"exponential={self.default_options.exponential_backoff}"
        )

    def _dispatch_event(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self.event_sink is None:
            return
        try:
            self.event_sink(event)
        except Exception as e:
            logger.warning(f"Event sink raised {type(e).__name__}: {e}", exc_info=True)

    def _notify_retry(self, options: RetryOptions, attempt_number: int, error: BaseException) -> None:
        if options.on_retry is None:
            return
        try:
            options.on_retry(attempt_number, error)
        except Exception as e:
            logger.warning(f"on_retry observer raised {type(e).__name__}: {e}", exc_info=True)

    def _handle_failure(
        self,
        error: Exception,
        attempt_number: int,
        options: RetryOptions,
        attempts: List[RetryAttempt],
        operation_name: str,
    ) -> float:
        """Records a failed attempt and returns the delay before the next one.

        Raises the error itself when it is not retryable, and a
        RetryExhaustedError when no attempts remain.
        """
        if not options.retry_condition(error):
            logger.error(
                f"Non-retryable error in {operation_name} on attempt {attempt_number}: "
                f"{type(error).__name__}: {error}"
            )
            self._dispatch_event(OperationFailed(
                operation=operation_name, attempts=attempt_number,
                error_type=type(error).__name__, error_message=str(error), retryable=False,
            ))
            raise error

        total_attempts = options.max_retries + 1
        if attempt_number >= total_attempts:
            attempts.append(RetryAttempt(attempt_number=attempt_number, error=error))
            logger.error(
                f"Max retries ({options.max_retries}) reached for {operation_name}. "
                f"Last error: {type(error).__name__}: {error}"
            )
            self._dispatch_event(OperationFailed(
                operation=operation_name, attempts=attempt_number,
                error_type=type(error).__name__, error_message=str(error), retryable=True,
            ))
            raise RetryExhaustedError(error, attempts) from error

        delay = options.delay_for(attempt_number)
        attempts.append(RetryAttempt(attempt_number=attempt_number, error=error, delay_before_next_attempt=delay))
        logger.warning(
            f"Retryable error in {operation_name} on attempt {attempt_number}/{total_attempts}: "
            f"{type(error).__name__}. Waiting {delay:.2f}s..."
        )
        self._dispatch_event(RetryScheduled(
            operation=operation_name, attempt_number=attempt_number,
            delay_seconds=delay, error_type=type(error).__name__,
        ))
        self._notify_retry(options, attempt_number, error)
        return delay

    def _succeeded(self, operation_name: str, attempt_number: int) -> None:
        if attempt_number > 1:
            logger.info(f"{operation_name} succeeded on attempt {attempt_number}.")
        self._dispatch_event(OperationSucceeded(operation=operation_name, attempts=attempt_number))

    async def retry_operation(
        self,
        operation: Callable[[], Awaitable[T]],
        options: Optional[RetryOptions] = None,
        operation_name: Optional[str] = None,
    ) -> T:
        """Executes an async operation, retrying failures with backoff.

        Args:
            operation: Zero-argument callable returning an awaitable.
            options: Retry policy (defaults to the executor's default_options).
            operation_name: Name used in logs and events.

        Returns:
            The operation's result.

        Raises:
            RetryExhaustedError: If every attempt failed with a retryable error.
            Exception: The original error if retry_condition rejected it.
        """
        opts = options or self.default_options
        name = operation_name or getattr(operation, "__name__", "operation")
        attempts: List[RetryAttempt] = []

        for attempt_number in range(1, opts.max_retries + 2):
            try:
                result = await operation()
            except Exception as e:
                delay = self._handle_failure(e, attempt_number, opts, attempts, name)
                await self._clock.sleep(delay)
                continue
            self._succeeded(name, attempt_number)
            return result

        # Unreachable: the final failure raises inside _handle_failure
        raise AssertionError("retry loop exited without result")

    def retry_operation_blocking(
        self,
        operation: Callable[[], T],
        options: Optional[RetryOptions] = None,
        operation_name: Optional[str] = None,
    ) -> T:
        """Synchronous twin of retry_operation for threaded hosts.

        The wait blocks only the calling thread.
        """
        opts = options or self.default_options
        name = operation_name or getattr(operation, "__name__", "operation")
        attempts: List[RetryAttempt] = []

        for attempt_number in range(1, opts.max_retries + 2):
            try:
                result = operation()
            except Exception as e:
                delay = self._handle_failure(e, attempt_number, opts, attempts, name)
                self._clock.sleep_blocking(delay)
                continue
            self._succeeded(name, attempt_number)
            return result

        raise AssertionError("retry loop exited without result")
