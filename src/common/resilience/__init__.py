"""
Resilience Patterns

Circuit breaker, retry with backoff, and the ResilientCall wrapper
combining them for fault-tolerant data access.
"""

from src.common.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitPermit,
    CircuitState,
    CircuitStats,
)
from src.common.resilience.exceptions import (
    CircuitOpenError,
    OperationError,
    ResilienceError,
    RetryExhaustedError,
)
from src.common.resilience.outcome import (
    CallOutcome,
    Err,
    Failed,
    Ok,
    OperationResult,
    Rejected,
    Success,
)
from src.common.resilience.resilient_call import ResilientCall
from src.common.resilience.retry import RetryConfig, retry_with_backoff, run_attempt

__all__ = [
    "CallOutcome",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitOpenError",
    "CircuitPermit",
    "CircuitState",
    "CircuitStats",
    "Err",
    "Failed",
    "Ok",
    "OperationError",
    "OperationResult",
    "Rejected",
    "ResilienceError",
    "ResilientCall",
    "RetryConfig",
    "RetryExhaustedError",
    "Success",
    "retry_with_backoff",
    "run_attempt",
]
