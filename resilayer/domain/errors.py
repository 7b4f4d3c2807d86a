"""Exception hierarchy for the resilience layer.

Only misuse (bad construction arguments, invalid keys) and terminal
failures are exceptional. Cache misses and rate-limit rejections are
ordinary ``None``/``False`` results and never raise.
"""

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from resilayer.domain.models.records import RetryAttempt


class ResilienceError(Exception):
    """Base class for all errors raised by resilayer."""


class ConfigurationError(ResilienceError, ValueError):
    """Raised when a component is constructed with invalid bounds."""


class ValidationError(ResilienceError, ValueError):
    """Raised when a caller passes malformed input (e.g. a non-positive TTL)."""


class InvalidKeyError(ValidationError):
    """Raised when a cache key is empty or not a string."""

    def __init__(self, key: object):
        self.key = key
        super().__init__(f"Cache key must be a non-empty string, got {key!r}")


class RetryExhaustedError(ResilienceError):
    """Raised when every retry attempt of an operation has failed.

    Carries the last underlying error and the full attempt history so the
    failure can be diagnosed without re-running the operation.
    """

    def __init__(self, last_error: BaseException, attempts: List["RetryAttempt"]):
        self.last_error = last_error
        self.attempts = list(attempts)
        self.total_attempts = len(self.attempts)
        super().__init__(
            f"Operation failed after {self.total_attempts} attempts: "
            f"{type(last_error).__name__}: {last_error}"
        )


class RateLimitExceededError(ResilienceError):
    """Raised by the guarded service when an identifier is over its limit."""

    def __init__(self, identifier: str, retry_after: float, remaining: Optional[int] = 0):
        self.identifier = identifier
        self.retry_after = retry_after
        self.remaining = remaining
        super().__init__(
            f"Rate limit exceeded for '{identifier}'. Retry after {retry_after:.2f}s"
        )
