"""
Operation results and call outcomes.

Operations may return an explicit Ok/Err variant instead of raising.
The retry loop inspects these variants; ResilientCall turns the final
variant into a CallOutcome for the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from src.common.resilience.exceptions import CircuitOpenError, RetryExhaustedError

T = TypeVar("T")


# =============================================================================
# Operation results
# =============================================================================


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful operation result."""

    value: T


@dataclass(frozen=True)
class Err:
    """Failed operation result."""

    error: Exception


OperationResult = Union[Ok[T], Err]


# =============================================================================
# Call outcomes
# =============================================================================


@dataclass(frozen=True)
class Success(Generic[T]):
    """The operation succeeded within the retry budget."""

    value: T
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failed:
    """Every attempt failed; `error` is the last one observed."""

    error: Exception
    attempts: int
    operation: str = "operation"

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(self.error)

    def unwrap(self) -> None:
        raise RetryExhaustedError(self.operation, self.attempts, str(self.error)) from self.error


@dataclass(frozen=True)
class Rejected:
    """The circuit breaker was open; the operation was never invoked."""

    key: str
    retry_after: float | None = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return CircuitOpenError(self.key, self.retry_after).message

    def unwrap(self) -> None:
        raise CircuitOpenError(self.key, self.retry_after)


CallOutcome = Union[Success[T], Failed, Rejected]
