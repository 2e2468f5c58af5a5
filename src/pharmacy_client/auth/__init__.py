"""
Session lifecycle: token storage, session guard and auth operations.

Provides:
- TokenStore over durable (file) and fallback (memory) storage
- SessionGuard, tearing the session down on authorization failure
- AuthApi: login, logout, refresh and account flows
"""

from pharmacy_client.auth.storage import FileStorage, MemoryStorage
from pharmacy_client.auth.session import (
    SESSION_KEYS,
    Session,
    SessionGuard,
    is_public_endpoint,
)
from pharmacy_client.auth.token_store import TokenStore
from pharmacy_client.auth.schemas import UserRole, decode_login_response
from pharmacy_client.auth.operations import AuthApi
from pharmacy_client.auth.utils import (
    decode_jwt_payload,
    friendly_auth_error,
    is_token_expired,
    role_redirect,
)

__all__ = [
    "AuthApi",
    "FileStorage",
    "MemoryStorage",
    "SESSION_KEYS",
    "Session",
    "SessionGuard",
    "TokenStore",
    "UserRole",
    "decode_jwt_payload",
    "decode_login_response",
    "friendly_auth_error",
    "is_public_endpoint",
    "is_token_expired",
    "role_redirect",
]
