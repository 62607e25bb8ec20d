"""
Resilience Exception Hierarchy

Structured error types surfaced by the retry and circuit breaker layer.
All inherit from ResilienceError so callers can catch the family at once.

Usage:
    from src.common.resilience.exceptions import CircuitOpenError

    try:
        loans = outcome.unwrap()
    except CircuitOpenError as e:
        logger.warning(f"Dependency unavailable, retry after {e.retry_after}")
"""

from __future__ import annotations


class ResilienceError(Exception):
    """
    Base exception for resilience errors.

    Attributes:
        message: Human-readable error description
        code: Optional machine-readable error code
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class OperationError(ResilienceError):
    """A wrapped operation failed. Always eligible for retry."""

    def __init__(self, message: str, code: str | None = "OPERATION_FAILED") -> None:
        super().__init__(message, code=code)


class CircuitOpenError(ResilienceError):
    """Circuit breaker is open, rejecting requests."""

    def __init__(self, service: str, retry_after: float | None = None) -> None:
        message = f"Circuit breaker open for {service}"
        if retry_after:
            message += f", retry after {retry_after:.1f}s"
        super().__init__(message, code="CIRCUIT_OPEN")
        self.service = service
        self.retry_after = retry_after


class RetryExhaustedError(ResilienceError):
    """All retry attempts exhausted."""

    def __init__(self, operation: str, attempts: int, last_error: str) -> None:
        super().__init__(
            f"Exhausted {attempts} attempts for '{operation}': {last_error}",
            code="RETRY_EXHAUSTED",
        )
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
