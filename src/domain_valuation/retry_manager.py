"""
Retry Manager for the domain valuation client.

A request that times out is retried after a warm-up call that wakes a
possibly cold backend. Only timeouts are retried; every other failure, and
the failure of the last retry, is surfaced to the caller unchanged.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from .config import RetryConfig
from .exceptions import RequestTimeoutError

T = TypeVar("T")


@dataclass
class RetryResult(Generic[T]):
    """Result of a retry operation."""

    success: bool
    result: Optional[T]
    attempts: int
    warm_ups: int
    last_error: Optional[Exception]


class RetryManager:
    """
    Runs an operation with the warm-up-then-retry policy.

    The operation receives the timeout to use for the attempt: the first
    attempt gets ``timeout``, each retry gets ``retry_timeout``.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the retry manager.

        Args:
            config: Retry configuration (attempt budget, delay before retry)
            sleep: Awaitable sleep, replaceable in tests
        """
        self._config = config or RetryConfig()
        self._sleep = sleep

    @property
    def retry_attempts(self) -> int:
        return max(0, self._config.retry_attempts)

    @staticmethod
    def is_retryable_error(error: Exception) -> bool:
        return isinstance(error, RequestTimeoutError)

    async def execute_with_retry(
        self,
        operation: Callable[[float], Awaitable[T]],
        timeout: float,
        retry_timeout: float,
        warm_up: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> RetryResult[T]:
        """
        Execute an operation, retrying timeouts after a warm-up call.

        Args:
            operation: Async callable taking the attempt timeout in seconds
            timeout: Timeout for the first attempt
            retry_timeout: Timeout for every retry
            warm_up: Optional best-effort call made before each retry

        Returns:
            RetryResult with the result or the error of the last attempt
        """
        max_attempts = self.retry_attempts + 1
        attempts = 0
        warm_ups = 0
        last_error: Optional[Exception] = None

        while attempts < max_attempts:
            attempt_timeout = timeout if attempts == 0 else retry_timeout
            try:
                result = await operation(attempt_timeout)
                return RetryResult(
                    success=True,
                    result=result,
                    attempts=attempts + 1,
                    warm_ups=warm_ups,
                    last_error=None,
                )
            except Exception as e:
                last_error = e
                attempts += 1

                if not self.is_retryable_error(e) or attempts >= max_attempts:
                    break

            if warm_up is not None:
                warm_ups += 1
                await warm_up()

            if self._config.retry_delay_seconds > 0:
                await self._sleep(self._config.retry_delay_seconds)

        return RetryResult(
            success=False,
            result=None,
            attempts=attempts,
            warm_ups=warm_ups,
            last_error=last_error,
        )

    async def run(
        self,
        operation: Callable[[float], Awaitable[T]],
        timeout: float,
        retry_timeout: float,
        warm_up: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> T:
        """Like execute_with_retry, but returns the result or raises the last error."""
        outcome = await self.execute_with_retry(operation, timeout, retry_timeout, warm_up)
        if outcome.success:
            return outcome.result
        assert outcome.last_error is not None
        raise outcome.last_error
