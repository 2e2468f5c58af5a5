"""Retry with exponential backoff for transport failures."""

from pharmacy_client.resilience.retry import (
    DEFAULT_RETRY,
    NO_RETRY,
    RetryConfig,
    run_with_retry,
)

__all__ = [
    "RetryConfig",
    "DEFAULT_RETRY",
    "NO_RETRY",
    "run_with_retry",
]
