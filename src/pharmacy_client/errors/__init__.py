"""
Error classification and exception hierarchy.

Provides:
- ClientError hierarchy, one class per ErrorKind
- Classifiers for transport failures and HTTP error responses
"""

from pharmacy_client.errors.classifiers import (
    BACKEND_INCOMPATIBILITY_MESSAGE,
    CORS_MESSAGE,
    NETWORK_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    classify_http_failure,
    classify_transport_error,
    default_status_message,
    is_backend_incompatibility,
    timeout_message,
)
from pharmacy_client.errors.exceptions import (
    BackendIncompatibilityError,
    ClientError,
    CorsError,
    HttpClientError,
    HttpServerError,
    NetworkError,
    RequestTimeoutError,
    SessionExpiredError,
    UnclassifiedError,
    wrap_exception,
)
from pharmacy_client.types import ErrorKind

__all__ = [
    # Enums
    "ErrorKind",
    # Exceptions
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
    # Classifiers
    "classify_transport_error",
    "classify_http_failure",
    "default_status_message",
    "is_backend_incompatibility",
    "timeout_message",
    # Messages
    "SESSION_EXPIRED_MESSAGE",
    "CORS_MESSAGE",
    "NETWORK_MESSAGE",
    "BACKEND_INCOMPATIBILITY_MESSAGE",
]
