"""Exponential backoff retry around fallible async operations.

Delays grow as base_delay * 2**(attempt - 1) plus up to 10% random jitter.
Failures are classified by their ``retryable`` attribute (see
eurrates.exceptions); anything without one is retried. The backoff wait is
awaited in place, so the calling cycle does not proceed until it elapses.
"""

import asyncio
import random
import uuid
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from eurrates.exceptions import RetryExhausted
from eurrates.logging import get_logger
from eurrates.models import RetryPolicy

T = TypeVar("T")

JITTER_RATIO = 0.1


def is_retryable(error: BaseException) -> bool:
    """Return whether another attempt may succeed after ``error``."""
    return bool(getattr(error, "retryable", True))


class RetryExecutor:
    """Runs an operation up to max_attempts times with jittered backoff.

    Usage:
        executor = RetryExecutor(RetryPolicy(max_attempts=3, base_delay=1.0))
        prices = await executor.execute(lambda: client.fetch_prices(symbols))
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._logger = logger or get_logger(__name__)

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: int | None = None,
        base_delay: float | None = None,
    ) -> T:
        """Await ``operation()`` until it succeeds or the retry budget is spent.

        Args:
            operation: Zero-argument callable returning an awaitable.
            max_retries: Total attempts; defaults to the policy's max_attempts.
            base_delay: Seconds before the first retry; defaults to the policy.

        Raises:
            RetryExhausted: After the last attempt fails, or immediately on a
                non-retryable failure such as an HTTP 4xx.
        """
        policy = RetryPolicy(
            max_attempts=self._policy.max_attempts if max_retries is None else max_retries,
            base_delay=self._policy.base_delay if base_delay is None else base_delay,
        )
        log = self._logger.bind(operation_id=f"retry_{uuid.uuid4().hex[:12]}")
        log.debug(
            "retry_operation_started",
            max_attempts=policy.max_attempts,
            base_delay=policy.base_delay,
        )

        last_error: Exception | None = None
        attempt = 0

        for attempt in range(1, policy.max_attempts + 1):
            try:
                result = await operation()
            except Exception as e:
                last_error = e
                retryable = is_retryable(e)
                log.warning(
                    "retry_attempt_failed",
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    retryable=retryable,
                    error=str(e),
                    exception_class=type(e).__name__,
                )
                if not retryable:
                    break
                if attempt < policy.max_attempts:
                    await self._wait_before_retry(log, policy.base_delay, attempt)
                continue

            if attempt > 1:
                log.info("retry_operation_recovered", successful_attempt=attempt)
            return result

        assert last_error is not None
        log.error(
            "retry_operation_failed",
            attempts=attempt,
            last_error=str(last_error),
            last_exception_class=type(last_error).__name__,
        )
        raise RetryExhausted(last_error, attempt) from last_error

    def backoff_delay(self, base_delay: float, attempt: int) -> float:
        """Delay before the retry that follows failed ``attempt`` (1-based)."""
        delay = base_delay * (2 ** (attempt - 1))
        return delay + self._rng.uniform(0, delay * JITTER_RATIO)

    async def _wait_before_retry(
        self, log: structlog.stdlib.BoundLogger, base_delay: float, attempt: int
    ) -> None:
        delay = self.backoff_delay(base_delay, attempt)
        log.debug("retry_backoff", delay_seconds=round(delay, 3), attempt=attempt)
        await self._sleep(delay)
