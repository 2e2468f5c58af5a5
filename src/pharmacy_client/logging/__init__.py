"""Structured logging: context variables, formatters and handler setup."""

from pharmacy_client.logging.context import (
    LogContext,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from pharmacy_client.logging.formatters import ConsoleFormatter, JSONFormatter
from pharmacy_client.logging.setup import setup_logging

__all__ = [
    "setup_logging",
    "JSONFormatter",
    "ConsoleFormatter",
    "LogContext",
    "set_log_context",
    "get_log_context",
    "clear_log_context",
]
