"""
Resilient Call

Runs an operation under a retry policy, guarded by the circuit breaker of
its operation class. The breaker wraps the whole retry loop: one call whose
attempts were all exhausted counts as one breaker failure.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from src.common.resilience.circuit_breaker import CircuitBreakerRegistry
from src.common.resilience.outcome import CallOutcome, Rejected, Success
from src.common.resilience.retry import (
    Operation,
    RetryConfig,
    Sleep,
    retry_with_backoff,
)

logger = logging.getLogger(__name__)


class ResilientCall:
    """
    Retry + circuit breaker wrapper returning a CallOutcome.

    Example:
        resilient = ResilientCall(CircuitBreakerRegistry())

        outcome = await resilient.call("loans-query", repository.list_loans)
        if isinstance(outcome, Success):
            return outcome.value
        if isinstance(outcome, Rejected):
            ...  # breaker open, fail fast
    """

    def __init__(
        self,
        registry: CircuitBreakerRegistry | None = None,
        retry_config: RetryConfig | None = None,
        sleep: Sleep = asyncio.sleep,
        on_retry: Callable[[str, int, Exception, float], None] | None = None,
    ):
        """
        Args:
            registry: Shared breaker state; a private registry is created if omitted
            retry_config: Retry policy (3 retries, 2**n second backoff by default)
            sleep: Async sleep primitive used for backoff
            on_retry: Optional callback(key, retry, error, delay)
        """
        self._registry = registry or CircuitBreakerRegistry()
        self._retry_config = retry_config or RetryConfig()
        self._sleep = sleep
        self._on_retry = on_retry

    @property
    def registry(self) -> CircuitBreakerRegistry:
        return self._registry

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry_config

    async def call(self, key: str, operation: Operation) -> CallOutcome[Any]:
        """
        Execute an operation for the given operation class.

        Args:
            key: Operation class; calls sharing a key share one breaker
            operation: Zero-argument callable, sync or async, returning a
                value or an Ok/Err result, or raising on failure

        Returns:
            Success, Failed (retries exhausted) or Rejected (breaker open,
            operation not invoked)
        """
        breaker = self._registry.get(key)

        permit = await breaker.try_acquire()
        if permit is None:
            logger.warning(f"Rejected call to '{key}': circuit breaker is open")
            return Rejected(key, retry_after=breaker.retry_after)

        def on_retry(retry: int, error: Exception, delay: float) -> None:
            if self._on_retry:
                self._on_retry(key, retry, error, delay)

        try:
            outcome = await retry_with_backoff(
                operation,
                config=self._retry_config,
                sleep=self._sleep,
                on_retry=on_retry,
                name=key,
            )
        except asyncio.CancelledError:
            await breaker.release(permit)
            raise

        if isinstance(outcome, Success):
            await breaker.record_success(permit)
        else:
            await breaker.record_failure(permit, outcome.error)
        return outcome
