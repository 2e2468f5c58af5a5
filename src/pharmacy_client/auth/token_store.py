"""
Token store with check-and-fallback storage selection.

Session artifacts live in durable storage when it works and in
process-scoped storage when it does not. Availability is re-checked on
every accessor call (write then delete a sentinel key), so a disk that
becomes writable again is picked up without a restart.

Accessors never raise: a backend failure is logged and reads degrade
to None.

Example:
    >>> store = TokenStore(FileStorage(config.storage_path))
    >>> store.set("accessToken", "eyJ0eXAi...")
    >>> store.load_session().access_token
    'eyJ0eXAi...'
"""

import logging
import threading
from typing import Any, Optional

from pharmacy_client.auth.session import (
    ACCESS_TOKEN_KEY,
    BRANCH_ID_KEY,
    REFRESH_TOKEN_KEY,
    ROLE_ID_KEY,
    SESSION_KEYS,
    USER_EMAIL_KEY,
    USER_ID_KEY,
    USER_NAME_KEY,
    USER_ROLE_KEY,
    Session,
)
from pharmacy_client.auth.storage import MemoryStorage
from pharmacy_client.types import SessionStorage

logger = logging.getLogger(__name__)

SENTINEL_KEY = "__storage_test__"


class TokenStore:
    """
    Session-artifact store over a durable and a fallback backend.

    The session generation counter is bumped on every teardown and login,
    letting in-flight work (token refresh) detect that the session it
    started under is gone.
    """

    def __init__(
        self,
        durable: SessionStorage,
        fallback: SessionStorage | None = None,
    ):
        self.durable = durable
        self.fallback = fallback if fallback is not None else MemoryStorage()
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def is_available(self) -> bool:
        """Check durable storage by writing and deleting a sentinel key."""
        try:
            self.durable.set_item(SENTINEL_KEY, SENTINEL_KEY)
            self.durable.remove_item(SENTINEL_KEY)
            return True
        except Exception as e:
            logger.debug(
                "Durable storage unavailable, using fallback: %s",
                e,
                extra={"storage_backend": "fallback", "error_type": type(e).__name__},
            )
            return False

    def _backend(self) -> SessionStorage:
        return self.durable if self.is_available() else self.fallback

    def get(self, key: str) -> Optional[str]:
        try:
            return self._backend().get_item(key)
        except Exception as e:
            logger.error("Session storage read failed for %s: %s", key, e)
            return None

    def set(self, key: str, value: Any) -> None:
        try:
            self._backend().set_item(key, str(value))
        except Exception as e:
            logger.error("Session storage write failed for %s: %s", key, e)

    def remove(self, key: str) -> None:
        try:
            self._backend().remove_item(key)
        except Exception as e:
            logger.error("Session storage remove failed for %s: %s", key, e)

    def begin_session(self) -> int:
        """Start a new session generation, invalidating in-flight refreshes."""
        with self._lock:
            self._generation += 1
            return self._generation

    def clear_session(self) -> None:
        """Remove all eight session fields and start a new generation."""
        self.begin_session()
        for key in SESSION_KEYS:
            self.remove(key)

    def save_session(
        self,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        role: Optional[str] = None,
        user_id: Any = None,
        user_name: Optional[str] = None,
        email: Optional[str] = None,
        role_id: Any = None,
        branch_id: Any = None,
    ) -> None:
        """Persist the given fields; None leaves a field untouched."""
        fields = {
            ACCESS_TOKEN_KEY: access_token,
            REFRESH_TOKEN_KEY: refresh_token,
            USER_ROLE_KEY: role,
            USER_ID_KEY: user_id,
            USER_NAME_KEY: user_name,
            USER_EMAIL_KEY: email,
            ROLE_ID_KEY: role_id,
            BRANCH_ID_KEY: branch_id,
        }
        for key, value in fields.items():
            if value is not None:
                self.set(key, value)

    def load_session(self) -> Optional[Session]:
        """Current session, or None when there is no access token."""
        access_token = self.get(ACCESS_TOKEN_KEY)
        if not access_token:
            return None
        return Session(
            access_token=access_token,
            refresh_token=self.get(REFRESH_TOKEN_KEY),
            role=self.get(USER_ROLE_KEY),
            user_id=self.get(USER_ID_KEY),
            user_name=self.get(USER_NAME_KEY),
            email=self.get(USER_EMAIL_KEY),
            role_id=self.get(ROLE_ID_KEY),
            branch_id=self.get(BRANCH_ID_KEY),
        )


__all__ = ["TokenStore", "SENTINEL_KEY"]
