"""
Resilient API client and session lifecycle manager for the pharmacy
operations backend.

Example:
    >>> async with ApiClient(load_config()) as client:
    ...     auth = AuthApi(client)
    ...     await auth.login("jane@pharmacy.test", "secret")
    ...     stock = await client.call("/inventory")
"""

from pharmacy_client.auth import (
    AuthApi,
    FileStorage,
    MemoryStorage,
    Session,
    TokenStore,
    UserRole,
)
from pharmacy_client.config import ClientConfig, get_config, load_config, set_config
from pharmacy_client.errors import ClientError
from pharmacy_client.http import ApiClient, RequestDescriptor
from pharmacy_client.types import ErrorKind, Navigator, SessionStorage

__version__ = "1.0.0"

__all__ = [
    "ApiClient",
    "AuthApi",
    "ClientConfig",
    "ClientError",
    "ErrorKind",
    "FileStorage",
    "MemoryStorage",
    "Navigator",
    "RequestDescriptor",
    "Session",
    "SessionStorage",
    "TokenStore",
    "UserRole",
    "get_config",
    "load_config",
    "set_config",
]
