"""
Retry utilities with classification-aware handling.

Uses the ClientError hierarchy to make retry decisions:
- Network/CORS transport failures: retry with exponential backoff
- Timeouts: fail immediately (cancellation is terminal)
- HTTP error responses: never reach the retry loop, they are not
  transport failures
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from pharmacy_client.errors.exceptions import ClientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 1.0
    # Uncapped by default so the schedule stays exactly base * 2**attempt
    max_delay: float | None = None
    exponential_base: float = 2.0

    # Equal jitter spreads concurrent clients apart; off keeps the exact
    # 1s, 2s, 4s schedule
    jitter: bool = False

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.max_attempts = int(self.max_attempts)
        self.base_delay = float(self.base_delay)
        if self.max_delay is not None:
            self.max_delay = float(self.max_delay)
        self.exponential_base = float(self.exponential_base)
        self.jitter = self.jitter if isinstance(self.jitter, bool) else bool(self.jitter)

    def get_delay(self, attempt: int) -> float:
        """
        Calculate the backoff delay after a failed attempt.

        Args:
            attempt: 0-indexed attempt number that just failed

        Returns:
            Delay in seconds
        """
        base_delay = self.base_delay * (self.exponential_base**attempt)

        if self.jitter:
            # Equal jitter: half fixed, half random
            base_delay = (base_delay / 2) + random.uniform(0, base_delay / 2)

        if self.max_delay is None:
            return base_delay
        return min(base_delay, self.max_delay)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """
        Determine if error should be retried.

        Args:
            error: The exception that occurred
            attempt: 0-indexed current attempt

        Returns:
            True if should retry
        """
        if attempt >= self.max_attempts - 1:
            return False

        if isinstance(error, ClientError):
            return error.is_retryable

        return False


DEFAULT_RETRY = RetryConfig(max_attempts=3, base_delay=1.0)
NO_RETRY = RetryConfig(max_attempts=1)


def _log_retry_failure(
    operation: str, error: Exception, attempt: int, config: RetryConfig
) -> None:
    error_kind = error.kind.value if isinstance(error, ClientError) else "unknown"
    if isinstance(error, ClientError) and not error.is_retryable:
        logger.warning(
            "Terminal error for %s, not retrying: %s",
            operation,
            str(error)[:200],
            extra={
                "operation": operation,
                "attempt": attempt + 1,
                "error_category": error_kind,
                "error_message": str(error)[:200],
            },
        )
        return

    logger.error(
        "Max retries exhausted for %s: %s",
        operation,
        str(error)[:200],
        extra={
            "operation": operation,
            "error_category": error_kind,
            "max_attempts": config.max_attempts,
            "error_message": str(error)[:200],
        },
    )


async def run_with_retry(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation: str = "request",
    sleep: SleepFunc | None = None,
) -> T:
    """
    Await ``func`` until it succeeds or the retry policy gives up.

    Attempts are strictly sequential. The final failure is re-raised
    unchanged.

    Args:
        func: Zero-argument coroutine factory, called once per attempt
        config: Retry configuration (defaults to DEFAULT_RETRY)
        operation: Name used in log records
        sleep: Awaitable sleep, injectable for tests (defaults to asyncio.sleep)
    """
    if config is None:
        config = DEFAULT_RETRY
    if sleep is None:
        sleep = asyncio.sleep

    attempt = 0
    while True:
        try:
            result = await func()
        except Exception as e:
            if not config.should_retry(e, attempt):
                _log_retry_failure(operation, e, attempt, config)
                raise

            delay = config.get_delay(attempt)
            logger.warning(
                "Retryable error for %s, will retry",
                operation,
                extra={
                    "operation": operation,
                    "attempt": attempt + 1,
                    "max_attempts": config.max_attempts,
                    "error_category": e.kind.value if isinstance(e, ClientError) else "unknown",
                    "delay_seconds": round(delay, 2),
                    "delay_source": "exponential_backoff",
                    "error_message": str(e)[:200],
                },
            )
            await sleep(delay)
            attempt += 1
            continue

        if attempt > 0:
            logger.info(
                "Retry succeeded for %s after %d attempts",
                operation,
                attempt + 1,
                extra={
                    "operation": operation,
                    "attempt": attempt + 1,
                    "total_attempts": config.max_attempts,
                },
            )
        return result


__all__ = [
    "RetryConfig",
    "DEFAULT_RETRY",
    "NO_RETRY",
    "run_with_retry",
]
