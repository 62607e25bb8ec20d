"""
Circuit Breaker Pattern

Prevents cascading failures by failing fast when a dependency is unhealthy.
Breakers are scoped per operation class and owned by a CircuitBreakerRegistry.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from src.common.resilience.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation, requests flow through
    OPEN = "open"  # Dependency unhealthy, requests fail fast
    HALF_OPEN = "half_open"  # One trial request allowed through


@dataclass
class CircuitStats:
    """Statistics for monitoring circuit breaker state."""

    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: float | None = None
    opened_at: float | None = None
    total_calls: int = 0
    total_failures: int = 0
    total_successes: int = 0
    total_rejections: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "total_calls": self.total_calls,
            "total_failures": self.total_failures,
            "total_successes": self.total_successes,
            "total_rejections": self.total_rejections,
        }


@dataclass(frozen=True)
class CircuitPermit:
    """
    Admission ticket handed out by try_acquire.

    The generation changes every time the circuit opens, so outcomes from
    calls admitted before that only count towards the totals.
    """

    generation: int
    trial: bool = False


class CircuitBreaker:
    """
    Circuit breaker counting consecutive failed calls.

    States:
    - CLOSED: Normal operation. Requests pass through.
              After failure_threshold consecutive failures, transitions to OPEN.
    - OPEN: Failing fast. Requests are rejected without being attempted.
            After recovery_timeout, transitions to HALF_OPEN.
    - HALF_OPEN: Exactly one trial request allowed through.
                 Success -> CLOSED, Failure -> OPEN for a new recovery_timeout.

    Example:
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=30.0)

        permit = await breaker.try_acquire()
        if permit is not None:
            try:
                result = await query()
            except Exception as e:
                await breaker.record_failure(permit, e)
                raise
            await breaker.record_success(permit)
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
        name: str = "default",
        clock: Clock = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Consecutive failures before opening circuit
            recovery_timeout: Seconds to stay open before allowing a trial
            name: Name for logging/metrics
            clock: Monotonic clock returning seconds
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")

        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._name = name
        self._clock = clock
        self._lock = asyncio.Lock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._opened_at: float | None = None
        self._trial_in_flight = False
        self._generation = 0

        self._total_calls = 0
        self._total_failures = 0
        self._total_successes = 0
        self._total_rejections = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        """Current state, reporting an expired OPEN circuit as HALF_OPEN."""
        if self._state == CircuitState.OPEN and self._cooldown_elapsed():
            return CircuitState.HALF_OPEN
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def retry_after(self) -> float | None:
        """Seconds left in the current cool-down, or None when not open."""
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return None
        remaining = self._recovery_timeout - (self._clock() - self._opened_at)
        return max(remaining, 0.0)

    @property
    def stats(self) -> CircuitStats:
        """Get current statistics."""
        return CircuitStats(
            state=self.state,
            failure_count=self._failure_count,
            last_failure_time=self._last_failure_time,
            opened_at=self._opened_at,
            total_calls=self._total_calls,
            total_failures=self._total_failures,
            total_successes=self._total_successes,
            total_rejections=self._total_rejections,
        )

    def _cooldown_elapsed(self) -> bool:
        if self._opened_at is None:
            return True
        return self._clock() - self._opened_at >= self._recovery_timeout

    def _open_circuit(self, now: float) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now
        self._trial_in_flight = False
        self._generation += 1

    def _is_current(self, permit: CircuitPermit) -> bool:
        return permit.generation == self._generation

    async def try_acquire(self) -> CircuitPermit | None:
        """
        Ask permission to invoke the guarded operation.

        Returns:
            A permit if the call may proceed, None if it must be rejected.
            A permit must be handed back to exactly one of record_success,
            record_failure or release.
        """
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if not self._cooldown_elapsed():
                    self._total_rejections += 1
                    return None
                logger.info(
                    f"Circuit breaker '{self._name}' transitioning to HALF_OPEN "
                    f"after {self._recovery_timeout:.1f}s cool-down"
                )
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = False

            trial = self._state == CircuitState.HALF_OPEN
            if trial:
                if self._trial_in_flight:
                    self._total_rejections += 1
                    return None
                self._trial_in_flight = True

            self._total_calls += 1
            return CircuitPermit(generation=self._generation, trial=trial)

    async def record_success(self, permit: CircuitPermit) -> None:
        """Handle successful call."""
        async with self._lock:
            self._total_successes += 1

            if not self._is_current(permit):
                # Admitted before the circuit last opened
                return

            if permit.trial and self._state == CircuitState.HALF_OPEN:
                logger.info(f"Circuit breaker '{self._name}' closing after successful trial")
                self._state = CircuitState.CLOSED
                self._failure_count = 0
                self._opened_at = None
                self._trial_in_flight = False
            elif self._state == CircuitState.CLOSED:
                self._failure_count = 0

    async def record_failure(
        self, permit: CircuitPermit, error: Exception | None = None
    ) -> None:
        """Handle failed call."""
        async with self._lock:
            now = self._clock()
            self._total_failures += 1
            self._last_failure_time = now

            if not self._is_current(permit):
                logger.debug(
                    f"Circuit breaker '{self._name}' ignoring stale failure: {error}"
                )
                return

            if permit.trial and self._state == CircuitState.HALF_OPEN:
                logger.warning(
                    f"Circuit breaker '{self._name}' reopening after failed trial: {error}"
                )
                self._failure_count += 1
                self._open_circuit(now)
                return

            if self._state != CircuitState.CLOSED:
                return

            self._failure_count += 1
            logger.warning(
                f"Circuit breaker '{self._name}' recorded failure "
                f"({self._failure_count}/{self._failure_threshold}): {error}"
            )
            if self._failure_count >= self._failure_threshold:
                logger.warning(
                    f"Circuit breaker '{self._name}' opening after "
                    f"{self._failure_count} consecutive failures"
                )
                self._open_circuit(now)

    async def release(self, permit: CircuitPermit) -> None:
        """Give back a permit without recording an outcome."""
        async with self._lock:
            if (
                permit.trial
                and self._is_current(permit)
                and self._state == CircuitState.HALF_OPEN
            ):
                self._trial_in_flight = False

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Execute an async function through the circuit breaker.

        Raises:
            CircuitOpenError: If circuit is open
            Exception: Any exception from the wrapped function
        """
        permit = await self.try_acquire()
        if permit is None:
            raise CircuitOpenError(self._name, retry_after=self.retry_after)

        try:
            result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            await self.release(permit)
            raise
        except Exception as e:
            await self.record_failure(permit, e)
            raise

        await self.record_success(permit)
        return result

    def reset(self) -> None:
        """Manually reset circuit to closed state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = None
        self._opened_at = None
        self._trial_in_flight = False
        self._generation += 1
        logger.info(f"Circuit breaker '{self._name}' manually reset to CLOSED")


class CircuitBreakerRegistry:
    """
    Owns one CircuitBreaker per operation class.

    Every caller holding the same registry shares breaker state for a key,
    so a failing dependency trips the breaker for all of them.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
        clock: Clock = time.monotonic,
    ):
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, key: str) -> CircuitBreaker:
        """Get the breaker for an operation class, creating it on first use."""
        breaker = self._breakers.get(key)
        if breaker is None:
            breaker = self._breakers.setdefault(
                key,
                CircuitBreaker(
                    failure_threshold=self._failure_threshold,
                    recovery_timeout=self._recovery_timeout,
                    name=key,
                    clock=self._clock,
                ),
            )
        return breaker

    def __contains__(self, key: object) -> bool:
        return key in self._breakers

    def keys(self) -> list[str]:
        return list(self._breakers)

    def stats(self) -> dict[str, CircuitStats]:
        """Snapshot of every breaker's statistics."""
        return {key: breaker.stats for key, breaker in self._breakers.items()}

    def reset(self, key: str | None = None) -> None:
        """Reset one breaker, or all of them when no key is given."""
        if key is not None:
            if key in self._breakers:
                self._breakers[key].reset()
            return
        for breaker in self._breakers.values():
            breaker.reset()
