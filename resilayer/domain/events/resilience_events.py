"""Domain Events related to guarded operations and retries.

Examples include events for when retries are scheduled, when an operation
finally succeeds, and when it fails definitively.
"""

from dataclasses import dataclass, field
import time
from typing import Optional

from ..models.common import Identifier

@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed operation."""
    operation: str
    attempt_number: int
    delay_seconds: float
    error_type: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class OperationSucceeded(DomainEvent):
    """Event triggered when an operation succeeds (possibly after retries)."""
    operation: str
    attempts: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class OperationFailed(DomainEvent):
    """Event triggered when an operation fails definitively."""
    operation: str
    attempts: int
    error_type: str
    error_message: str
    retryable: bool
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestRejected(DomainEvent):
    """Event triggered when a request is refused by the rate limiter."""
    identifier: Identifier
    retry_after: float
    operation: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
