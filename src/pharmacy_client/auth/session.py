"""
Session model and the session guard.

The guard inspects every completed exchange. A 401 from a protected
endpoint means the server no longer honours the local credentials, so the
local session is torn down immediately and the user is sent back to the
login surface. Public auth endpoints answer 401 for bad credentials and are
left to ordinary error mapping.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

from pharmacy_client.config import DEFAULT_PUBLIC_ENDPOINTS
from pharmacy_client.errors.classifiers import SESSION_EXPIRED_MESSAGE
from pharmacy_client.errors.exceptions import SessionExpiredError
from pharmacy_client.types import Navigator

if TYPE_CHECKING:
    from pharmacy_client.auth.token_store import TokenStore
    from pharmacy_client.http.models import TransportResponse

logger = logging.getLogger(__name__)

# Storage keys of the eight session fields
ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
USER_ROLE_KEY = "userRole"
USER_ID_KEY = "userId"
USER_NAME_KEY = "userName"
USER_EMAIL_KEY = "userEmail"
ROLE_ID_KEY = "roleId"
BRANCH_ID_KEY = "branchId"

SESSION_KEYS = (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USER_ROLE_KEY,
    USER_ID_KEY,
    USER_NAME_KEY,
    USER_EMAIL_KEY,
    ROLE_ID_KEY,
    BRANCH_ID_KEY,
)


@dataclass(frozen=True)
class Session:
    """
    Snapshot of the persisted session fields.

    Only built when an access token exists; identity fields left over
    from an earlier session are never exposed without one.
    """

    access_token: str
    refresh_token: Optional[str] = None
    role: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    email: Optional[str] = None
    role_id: Optional[str] = None
    branch_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Identity view without credentials, safe to print or log."""
        return {
            "role": self.role,
            "userId": self.user_id,
            "userName": self.user_name,
            "userEmail": self.email,
            "roleId": self.role_id,
            "branchId": self.branch_id,
        }


def is_public_endpoint(endpoint: str, public_endpoints: Iterable[str]) -> bool:
    """Exact or suffix match against the public endpoint set."""
    return any(
        endpoint == public or endpoint.endswith(public) for public in public_endpoints
    )


class SessionGuard:
    """
    Tears down the local session on authorization failure.

    Args:
        token_store: Store holding the session fields
        navigator: Optional navigable context; headless callers omit it
        login_path: Path of the login surface
        public_endpoints: Endpoints whose 401 means bad credentials
    """

    def __init__(
        self,
        token_store: "TokenStore",
        navigator: Navigator | None = None,
        login_path: str = "/login",
        public_endpoints: Iterable[str] | None = None,
    ):
        self.token_store = token_store
        self.navigator = navigator
        self.login_path = login_path
        self.public_endpoints = tuple(
            DEFAULT_PUBLIC_ENDPOINTS if public_endpoints is None else public_endpoints
        )

    def is_public(self, endpoint: str) -> bool:
        return is_public_endpoint(endpoint, self.public_endpoints)

    def inspect(self, endpoint: str, response: "TransportResponse") -> None:
        """
        Check a completed exchange for session expiry.

        Raises:
            SessionExpiredError: 401 on a protected endpoint, after the
                session has been cleared and the redirect issued
        """
        if response.status != 401 or self.is_public(endpoint):
            return

        self.token_store.clear_session()
        logger.warning(
            "Session expired, local session cleared",
            extra={
                "api_endpoint": endpoint,
                "http_status": response.status,
                "session_generation": self.token_store.generation,
            },
        )
        self._redirect_to_login()

        raise SessionExpiredError(
            SESSION_EXPIRED_MESSAGE,
            status_code=response.status,
            context={"endpoint": endpoint},
        )

    def _redirect_to_login(self) -> None:
        if self.navigator is None:
            return
        if self.login_path in self.navigator.current_path:
            return
        logger.info(
            "Redirecting to login",
            extra={"redirect_path": self.login_path},
        )
        self.navigator.redirect(self.login_path)


__all__ = [
    "SESSION_KEYS",
    "ACCESS_TOKEN_KEY",
    "REFRESH_TOKEN_KEY",
    "USER_ROLE_KEY",
    "USER_ID_KEY",
    "USER_NAME_KEY",
    "USER_EMAIL_KEY",
    "ROLE_ID_KEY",
    "BRANCH_ID_KEY",
    "Session",
    "SessionGuard",
    "is_public_endpoint",
]
