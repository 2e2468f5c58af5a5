"""
Auth domain operations: login, logout, token refresh and account flows.

All operations go through ``ApiClient.call`` and return outcome envelopes,
except ``logout`` which returns nothing and never fails.

Concurrency policy for the token store:
    Logout always wins and refresh is single-flight. Concurrent
    ``refresh_token()`` calls share one in-flight request. Logout, session
    expiry and login each start a new session generation; a refresh that
    completes under a newer generation neither stores nor removes tokens.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Optional

import aiohttp
from pydantic import ValidationError

from pharmacy_client.auth.schemas import UserRole, decode_login_response
from pharmacy_client.auth.session import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USER_ROLE_KEY,
    Session,
)

if TYPE_CHECKING:
    from pharmacy_client.http.client import ApiClient

logger = logging.getLogger(__name__)

NO_REFRESH_TOKEN_MESSAGE = "No refresh token available"
NO_TOKEN_MESSAGE = "No token available"
REFRESH_FAILED_MESSAGE = "Token refresh failed"
REFRESH_SUPERSEDED_MESSAGE = "Session ended while the token was being refreshed"


class AuthApi:
    """
    Session lifecycle operations over an ApiClient.

    Usage:
        async with ApiClient(config) as client:
            auth = AuthApi(client)
            result = await auth.login("jane@pharmacy.test", "secret")
            if result["success"]:
                print(result["role"])
    """

    def __init__(self, client: "ApiClient"):
        self.client = client
        self.token_store = client.token_store
        self._refresh_task: Optional[asyncio.Task] = None

    # =========================================================================
    # Login / logout
    # =========================================================================

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """
        Authenticate and persist the session.

        On success the envelope gains ``role`` and, when the server flags
        it, ``requiresPasswordChange = True``.
        """
        response = await self.client.call(
            "/auth/login",
            method="POST",
            body={"email": email, "password": password},
            skip_auth=True,
        )
        if not response.get("success"):
            return response

        try:
            login = decode_login_response(response)
        except ValidationError as e:
            logger.error(
                "Login response could not be decoded",
                extra={"error_type": type(e).__name__, "error_message": str(e)[:200]},
            )
            return {"success": False, "message": "Invalid login response from server"}

        store = self.token_store
        # Refreshes started under the previous session must not touch this one
        store.begin_session()
        if login.token:
            store.set(ACCESS_TOKEN_KEY, login.token)
        if login.refresh_token:
            store.set(REFRESH_TOKEN_KEY, login.refresh_token)

        role = login.role
        store.set(USER_ROLE_KEY, role.value)
        response["role"] = role.value

        user = login.user
        if user is not None:
            store.save_session(
                user_id=user.id or "",
                user_name=user.full_name or "",
                email=user.email or "",
                role_id=user.role_id or "",
                branch_id=user.branch_id or "",
            )

        if login.password_change_required:
            response["requiresPasswordChange"] = True

        logger.info(
            "Login succeeded",
            extra={"user_role": role.value, "session_generation": store.generation},
        )
        return response

    async def logout(self) -> None:
        """
        End the session.

        The server call is best effort; local session fields are always
        cleared, even when the call fails or times out.
        """
        try:
            if self.token_store.get(ACCESS_TOKEN_KEY):
                await self.client.request("/auth/logout", method="POST")
        except Exception as e:
            logger.warning(
                "Server logout failed: %s",
                e,
                extra={"error_type": type(e).__name__},
            )
        finally:
            self.token_store.clear_session()
            logger.info(
                "Local session cleared",
                extra={"session_generation": self.token_store.generation},
            )

    # =========================================================================
    # Token lifecycle
    # =========================================================================

    async def refresh_token(self) -> dict[str, Any]:
        """
        Exchange the refresh credential for a new access token.

        Concurrent callers share one in-flight refresh.
        """
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.ensure_future(self._refresh())
        # Shielded so one cancelled waiter does not cancel the shared refresh
        return await asyncio.shield(self._refresh_task)

    async def _refresh(self) -> dict[str, Any]:
        store = self.token_store
        refresh_token = store.get(REFRESH_TOKEN_KEY)
        if not refresh_token:
            return {"success": False, "message": NO_REFRESH_TOKEN_MESSAGE}

        generation = store.generation
        response = await self.client.call(
            "/auth/refresh",
            method="POST",
            body={"refreshToken": refresh_token},
        )

        if store.generation != generation:
            # Logout or a new login happened meanwhile; leave that session alone
            logger.info(
                "Discarding refresh outcome, session changed during refresh",
                extra={"session_generation": store.generation},
            )
            return {"success": False, "message": REFRESH_SUPERSEDED_MESSAGE}

        if response.get("success") and response.get("token"):
            store.set(ACCESS_TOKEN_KEY, response["token"])
            logger.info("Access token refreshed")
            return response

        store.remove(ACCESS_TOKEN_KEY)
        store.remove(REFRESH_TOKEN_KEY)
        message = response.get("message") or REFRESH_FAILED_MESSAGE
        logger.warning(
            "Token refresh failed: %s",
            message,
            extra={"error_message": message[:200]},
        )
        return {"success": False, "message": message}

    async def verify_token(self) -> dict[str, Any]:
        if not self.token_store.get(ACCESS_TOKEN_KEY):
            return {"success": False, "message": NO_TOKEN_MESSAGE}
        return await self.client.call("/auth/verify", method="POST")

    # =========================================================================
    # Account flows
    # =========================================================================

    async def change_password(self, current_password: str, new_password: str) -> dict[str, Any]:
        return await self.client.call(
            "/auth/change-password",
            method="POST",
            body={
                "current_password": current_password,
                "new_password": new_password,
                "new_password_confirmation": new_password,
            },
        )

    async def register(
        self,
        full_name: str,
        email: str,
        password: str,
        role_id: Optional[int] = None,
        branch_id: Optional[int] = None,
        **extra_fields: Any,
    ) -> dict[str, Any]:
        body = {
            "full_name": full_name,
            "email": email,
            "password": password,
            "role_id": role_id,
            "branch_id": branch_id,
            **extra_fields,
        }
        return await self.client.call(
            "/auth/register", method="POST", body=body, skip_auth=True
        )

    async def forgot_password(self, email: str) -> dict[str, Any]:
        return await self.client.call(
            "/auth/forgot-password",
            method="POST",
            body={"email": email},
            skip_auth=True,
        )

    async def reset_password(self, token: str, new_password: str) -> dict[str, Any]:
        return await self.client.call(
            "/auth/reset-password",
            method="POST",
            body={"token": token, "newPassword": new_password},
            skip_auth=True,
        )

    async def verify_email(self, email: str, verification_code: str) -> dict[str, Any]:
        return await self.client.call(
            "/auth/verify-email",
            method="POST",
            body={"email": email, "verification_code": verification_code},
            skip_auth=True,
        )

    async def resend_verification(self, email: str) -> dict[str, Any]:
        return await self.client.call(
            "/auth/resend-verification",
            method="POST",
            body={"email": email},
            skip_auth=True,
        )

    # =========================================================================
    # Profile
    # =========================================================================

    async def get_profile(self) -> dict[str, Any]:
        return await self.client.call("/auth/me")

    async def update_profile(self, profile: dict[str, Any] | aiohttp.FormData) -> dict[str, Any]:
        """Update the profile; multipart bodies let the transport set Content-Type."""
        is_form = isinstance(profile, aiohttp.FormData)
        return await self.client.call(
            "/auth/profile",
            method="PUT",
            body=profile,
            skip_content_type=is_form,
        )

    async def restore_session(self) -> Optional[Session]:
        """
        Validate a persisted session at start-up.

        Returns the session when the server still accepts the token; on any
        failure the local session is cleared and None returned.
        """
        if not self.token_store.get(ACCESS_TOKEN_KEY):
            return None

        response = await self.get_profile()
        if response.get("success"):
            return self.current_user()

        logger.info(
            "Stored session rejected, clearing: %s",
            response.get("message"),
        )
        self.token_store.clear_session()
        return None

    # =========================================================================
    # Local session reads
    # =========================================================================

    def current_user(self) -> Optional[Session]:
        return self.token_store.load_session()

    def is_authenticated(self) -> bool:
        return bool(self.token_store.get(ACCESS_TOKEN_KEY))

    def user_role(self) -> Optional[UserRole]:
        session = self.token_store.load_session()
        if session is None or not session.role:
            return None
        try:
            return UserRole(session.role)
        except ValueError:
            return UserRole.USER


__all__ = [
    "AuthApi",
    "NO_REFRESH_TOKEN_MESSAGE",
    "NO_TOKEN_MESSAGE",
    "REFRESH_FAILED_MESSAGE",
    "REFRESH_SUPERSEDED_MESSAGE",
]
