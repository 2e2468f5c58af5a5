"""
Unified exception hierarchy for the pharmacy API client.

Provides typed exceptions with a fixed taxonomy kind so the retry policy
and the result normalizer can act on a classification made once, at the
boundary where the failure happened.
"""

from pharmacy_client.types import ErrorKind


class ClientError(Exception):
    """
    Base exception for all API client errors.

    Attributes:
        message: Human-readable error description shown to the user
        status_code: HTTP status if the failure came from a response
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    kind: ErrorKind = ErrorKind.UNCLASSIFIED

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Only transport failures that may clear up on their own."""
        return self.kind in (
            ErrorKind.NETWORK_UNREACHABLE,
            ErrorKind.CORS_MISCONFIGURED,
        )

    @property
    def is_transport_error(self) -> bool:
        return self.kind in (
            ErrorKind.TIMEOUT,
            ErrorKind.NETWORK_UNREACHABLE,
            ErrorKind.CORS_MISCONFIGURED,
        )

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Transport Errors
# =============================================================================


class RequestTimeoutError(ClientError):
    """Request cancelled after exceeding its time budget (terminal, never retried)."""

    kind = ErrorKind.TIMEOUT


class NetworkError(ClientError):
    """Connection could not be established or was dropped."""

    kind = ErrorKind.NETWORK_UNREACHABLE


class CorsError(ClientError):
    """Backend refused the request origin."""

    kind = ErrorKind.CORS_MISCONFIGURED


# =============================================================================
# Session Errors
# =============================================================================


class SessionExpiredError(ClientError):
    """Protected endpoint returned 401; local session has been torn down."""

    kind = ErrorKind.SESSION_EXPIRED


# =============================================================================
# HTTP Errors
# =============================================================================


class HttpClientError(ClientError):
    """4xx response."""

    kind = ErrorKind.HTTP_CLIENT_ERROR


class HttpServerError(ClientError):
    """5xx response."""

    kind = ErrorKind.HTTP_SERVER_ERROR


class BackendIncompatibilityError(ClientError):
    """Server surfaced a known SQL portability failure."""

    kind = ErrorKind.BACKEND_INCOMPATIBILITY


class UnclassifiedError(ClientError):
    """Fallback: message is passed through unchanged."""

    kind = ErrorKind.UNCLASSIFIED


def wrap_exception(exc: Exception, message: str | None = None) -> ClientError:
    """Wrap an unexpected exception so it can cross the client boundary."""
    if isinstance(exc, ClientError):
        return exc
    return UnclassifiedError(message or str(exc), cause=exc)


__all__ = [
    "ClientError",
    "RequestTimeoutError",
    "NetworkError",
    "CorsError",
    "SessionExpiredError",
    "HttpClientError",
    "HttpServerError",
    "BackendIncompatibilityError",
    "UnclassifiedError",
    "wrap_exception",
]
