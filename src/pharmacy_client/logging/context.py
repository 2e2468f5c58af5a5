"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_request_id: ContextVar[str] = ContextVar("request_id", default="")
_endpoint: ContextVar[str] = ContextVar("endpoint", default="")
_operation: ContextVar[str] = ContextVar("operation", default="")


def set_log_context(
    request_id: Optional[str] = None,
    endpoint: Optional[str] = None,
    operation: Optional[str] = None,
) -> None:
    if request_id is not None:
        _request_id.set(request_id)
    if endpoint is not None:
        _endpoint.set(endpoint)
    if operation is not None:
        _operation.set(operation)


def get_log_context() -> Dict[str, str]:
    return {
        "request_id": _request_id.get(),
        "endpoint": _endpoint.get(),
        "operation": _operation.get(),
    }


def clear_log_context() -> None:
    _request_id.set("")
    _endpoint.set("")
    _operation.set("")


class LogContext:
    """
    Context manager for temporary log context.

    Usage:
        with LogContext(request_id=request_id, endpoint="/auth/login"):
            # All logs in this block carry request_id and endpoint
            await dispatch()
    """

    def __init__(
        self,
        request_id: Optional[str] = None,
        endpoint: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        self.new_context = {
            "request_id": request_id,
            "endpoint": endpoint,
            "operation": operation,
        }
        self.old_context: Dict[str, str] = {}

    def __enter__(self) -> "LogContext":
        self.old_context = get_log_context()
        set_log_context(**self.new_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Restore old context
        set_log_context(**self.old_context)
        return False


__all__ = [
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "LogContext",
]
