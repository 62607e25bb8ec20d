"""
Retry with Exponential Backoff

Retries failed operations with a fixed exponential backoff. The loop works
on explicit Ok/Err results; exceptions raised by an operation are turned
into Err once, in run_attempt.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Union

from src.common.resilience.outcome import Err, Failed, Ok, OperationResult, Success

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]
Operation = Callable[[], Union[Awaitable[Any], Any]]


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3  # Additional attempts after the first
    base_delay: float = 1.0
    exponential_base: float = 2.0
    max_delay: float | None = None
    jitter: bool = False

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry: int) -> float:
        """
        Delay before the given retry, counted from 1.

        With the defaults this is 2**retry seconds: 2, 4, 8.
        """
        delay = self.base_delay * (self.exponential_base**retry)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        if self.jitter:
            delay = delay * (0.5 + random.random())
        return delay


async def run_attempt(operation: Operation) -> OperationResult:
    """
    Invoke an operation once and normalize what it produced.

    Sync and async callables are both accepted. A returned Ok/Err is passed
    through, any other return value becomes Ok, a raised exception becomes Err.
    """
    try:
        result = operation()
        if inspect.isawaitable(result):
            result = await result
    except Exception as e:
        return Err(e)

    if isinstance(result, (Ok, Err)):
        return result
    return Ok(result)


async def retry_with_backoff(
    operation: Operation,
    config: RetryConfig | None = None,
    sleep: Sleep = asyncio.sleep,
    on_retry: Callable[[int, Exception, float], None] | None = None,
    name: str = "operation",
) -> Success[Any] | Failed:
    """
    Retry an operation with exponential backoff.

    Args:
        operation: Zero-argument callable, sync or async
        config: Retry configuration
        sleep: Async sleep primitive used between attempts
        on_retry: Optional callback(retry, error, delay) before each retry
        name: Operation name used in logs and in Failed outcomes

    Returns:
        Success with the value and the number of attempts made, or
        Failed with the last error once every attempt has failed.

    Example:
        async def fetch_loans():
            async with pool.acquire() as conn:
                return await conn.fetch("SELECT loan_id FROM loans")

        outcome = await retry_with_backoff(fetch_loans)
        if outcome.ok:
            rows = outcome.value
    """
    config = config or RetryConfig()
    attempt = 0

    while True:
        attempt += 1
        result = await run_attempt(operation)

        if isinstance(result, Ok):
            return Success(result.value, attempts=attempt)

        error = result.error
        if attempt >= config.max_attempts:
            logger.warning(f"Retry exhausted for '{name}' after {attempt} attempts: {error}")
            return Failed(error, attempts=attempt, operation=name)

        delay = config.delay_for(attempt)
        logger.info(
            f"Attempt {attempt}/{config.max_attempts} of '{name}' failed: {error}. "
            f"Retrying in {delay:.2f}s"
        )

        if on_retry:
            on_retry(attempt, error, delay)

        await sleep(delay)
