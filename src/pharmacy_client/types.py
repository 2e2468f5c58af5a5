"""
Core types and protocols used across the client.

This module provides the error taxonomy enum and the protocol definitions
that the HTTP layer, the token store and the session guard share, so the
pieces can be swapped (tests, alternative storage) without touching call
sites.
"""

from enum import Enum
from typing import Protocol


class ErrorKind(Enum):
    """
    Closed taxonomy of failures produced by the API client.

    Every failure is assigned exactly one kind before it is rendered as a
    user-facing message.

    Kinds:
        TIMEOUT: The request exceeded its time budget and was cancelled
        NETWORK_UNREACHABLE: Transport failure (DNS, refused, reset)
        CORS_MISCONFIGURED: Transport rejected the request as cross-origin
        SESSION_EXPIRED: Protected endpoint answered 401, session torn down
        HTTP_CLIENT_ERROR: 4xx response, actionable by the user
        HTTP_SERVER_ERROR: 5xx response, retry later
        BACKEND_INCOMPATIBILITY: Server issued non-portable SQL
        UNCLASSIFIED: Anything else, message passed through
    """

    TIMEOUT = "timeout"
    NETWORK_UNREACHABLE = "network_unreachable"
    CORS_MISCONFIGURED = "cors_misconfigured"
    SESSION_EXPIRED = "session_expired"
    HTTP_CLIENT_ERROR = "http_client_error"
    HTTP_SERVER_ERROR = "http_server_error"
    BACKEND_INCOMPATIBILITY = "backend_incompatibility"
    UNCLASSIFIED = "unclassified"


class SessionStorage(Protocol):
    """
    Key/value storage backend for session artifacts.

    Implementations may raise on any operation (disk full, permissions);
    the TokenStore decides how to degrade.
    """

    def get_item(self, key: str) -> str | None:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...

    def clear(self) -> None:
        ...


class Navigator(Protocol):
    """
    Navigable context able to send the user to the login surface.

    A headless process simply does not attach one.
    """

    @property
    def current_path(self) -> str:
        ...

    def redirect(self, path: str) -> None:
        ...


__all__ = [
    "ErrorKind",
    "SessionStorage",
    "Navigator",
]
