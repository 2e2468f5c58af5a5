"""
Error classification for transport failures and HTTP error responses.

Maps aiohttp/asyncio exceptions and non-2xx responses onto the ClientError
hierarchy, each carrying the human-readable message that eventually reaches
feature code.

Rules, in priority order:
    1. Timeout                         -> RequestTimeoutError
    2. Transport failure naming CORS   -> CorsError
    3. Other transport failure         -> NetworkError
    4. Status 0 on a non-ok response   -> CorsError
    5. Non-2xx status                  -> backend incompatibility override,
                                          server message, or status default
"""

import json
import logging
from typing import Any

from pharmacy_client.errors.exceptions import (
    BackendIncompatibilityError,
    ClientError,
    CorsError,
    HttpClientError,
    HttpServerError,
    NetworkError,
    RequestTimeoutError,
    UnclassifiedError,
)

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Session expired. Please login again."

CORS_MESSAGE = (
    "CORS error: The API may not be configured to accept requests from this "
    "domain. Contact the administrator to ensure proper CORS configuration."
)

NETWORK_MESSAGE = "Network error. Please check your internet connection or backend URL."

BACKEND_INCOMPATIBILITY_MESSAGE = (
    "Database query error: The backend is using incompatible SQL syntax. "
    "Please contact the backend team."
)

# Status code -> message used when the server does not provide one
STATUS_DEFAULT_MESSAGES: dict[int, str] = {
    400: "Invalid request. Please check your input.",
    403: "You don't have permission for this action.",
    404: "Resource not found.",
    409: "This action conflicts with existing data.",
    422: "Validation error. Please check your input.",
    429: "Too many requests. Please try again later.",
    500: "Server error. Please try again later.",
    502: "Service temporarily unavailable. Please try again.",
    503: "Service temporarily unavailable. Please try again.",
    504: "Service temporarily unavailable. Please try again.",
}

# Signatures of PostgreSQL rejecting MySQL-flavoured SQL issued by the backend
SQL_INCOMPATIBILITY_MARKERS = (
    "function year",
    "timestamp without time zone",
)
SQL_INCOMPATIBILITY_ERROR_CODES = frozenset({"42883"})

CORS_MARKERS = ("cors", "cross-origin")


def timeout_message(base_url: str) -> str:
    return (
        "Request to the server took too long and was cancelled. Please check "
        f"that the backend is reachable at {base_url} and try again."
    )


def default_status_message(status: int) -> str:
    return STATUS_DEFAULT_MESSAGES.get(status, f"HTTP error! status: {status}")


def is_backend_incompatibility(message: str | None, error_code: Any = None) -> bool:
    """Check whether a server error is a known SQL portability failure."""
    if error_code is not None and str(error_code) in SQL_INCOMPATIBILITY_ERROR_CODES:
        return True
    if not message:
        return False
    return any(marker in message for marker in SQL_INCOMPATIBILITY_MARKERS)


def parse_error_body(body: str | bytes | None) -> dict[str, Any]:
    """Parse an error body as a JSON object, tolerating anything else as {}."""
    if not body:
        return {}
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def classify_transport_error(
    error: BaseException,
    base_url: str,
    context: dict | None = None,
) -> ClientError:
    """
    Classify an exception raised before any response was received.

    Args:
        error: Exception from the transport (aiohttp, asyncio, OS)
        base_url: Configured backend URL, named in the timeout message
        context: Additional context for debugging

    Returns:
        Classified ClientError subclass
    """
    if isinstance(error, ClientError):
        return error

    # asyncio.TimeoutError is an alias of TimeoutError on 3.11+
    if isinstance(error, TimeoutError):
        return RequestTimeoutError(
            timeout_message(base_url), cause=error, context=context
        )

    error_str = str(error).lower()
    if any(marker in error_str for marker in CORS_MARKERS):
        return CorsError(CORS_MESSAGE, cause=error, context=context)

    return NetworkError(NETWORK_MESSAGE, cause=error, context=context)


def classify_http_failure(
    status: int,
    body: str | bytes | None,
    context: dict | None = None,
) -> ClientError:
    """
    Classify a completed exchange whose status is not 2xx.

    Args:
        status: HTTP status code (0 when the transport hid the real one)
        body: Raw response body
        context: Additional context for debugging

    Returns:
        Classified ClientError subclass carrying the user-facing message
    """
    if status == 0:
        return CorsError(CORS_MESSAGE, status_code=status, context=context)

    error_data = parse_error_body(body)
    server_message = error_data.get("message")
    if server_message is not None and not isinstance(server_message, str):
        server_message = str(server_message)

    if is_backend_incompatibility(server_message, error_data.get("errorCode")):
        logger.warning(
            "Backend SQL incompatibility detected",
            extra={
                "http_status": status,
                "error_code": error_data.get("errorCode"),
                "error_message": (server_message or "")[:200],
            },
        )
        return BackendIncompatibilityError(
            BACKEND_INCOMPATIBILITY_MESSAGE, status_code=status, context=context
        )

    message = server_message or default_status_message(status)

    if 400 <= status < 500:
        return HttpClientError(message, status_code=status, context=context)
    if status >= 500:
        return HttpServerError(message, status_code=status, context=context)
    return UnclassifiedError(message, status_code=status, context=context)


__all__ = [
    "SESSION_EXPIRED_MESSAGE",
    "CORS_MESSAGE",
    "NETWORK_MESSAGE",
    "BACKEND_INCOMPATIBILITY_MESSAGE",
    "STATUS_DEFAULT_MESSAGES",
    "timeout_message",
    "default_status_message",
    "is_backend_incompatibility",
    "parse_error_body",
    "classify_transport_error",
    "classify_http_failure",
]
