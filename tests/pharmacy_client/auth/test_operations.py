"""
Tests for AuthApi session lifecycle operations.

Tests cover:
- Login persistence and role derivation
- Logout clearing local state even when the server call fails
- Single-flight token refresh and discard after logout
- Account flow request bodies
- Session restore at start-up
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from pharmacy_client.auth.operations import (
    NO_REFRESH_TOKEN_MESSAGE,
    NO_TOKEN_MESSAGE,
    REFRESH_FAILED_MESSAGE,
    REFRESH_SUPERSEDED_MESSAGE,
    AuthApi,
)
from pharmacy_client.auth.schemas import UserRole
from pharmacy_client.auth.session import SESSION_KEYS

BASE_URL = "http://api.test"


@pytest.fixture
def auth(client):
    return AuthApi(client)


def _sent(mock_session, index=-1):
    """Return (method, url, headers, json body) of a recorded request."""
    args, kwargs = mock_session.request.call_args_list[index]
    data = kwargs.get("data")
    body = json.loads(data) if isinstance(data, str) else data
    return args[0], args[1], kwargs["headers"], body


def _gated(response, gate: asyncio.Event):
    """Make a mock response wait for ``gate`` before yielding."""

    async def enter(*args, **kwargs):
        await gate.wait()
        return response

    response.__aenter__ = AsyncMock(side_effect=enter)
    return response


async def _wait_for_request(mock_session):
    """Yield to the loop until the background refresh has issued its request."""
    while not mock_session.request.called:
        await asyncio.sleep(0)


class TestLogin:
    """Tests for login."""

    @pytest.mark.asyncio
    async def test_persists_session(self, auth, token_store, mock_session, response_factory):
        mock_session.request = MagicMock(
            return_value=response_factory(
                200,
                {
                    "token": "t1",
                    "refreshToken": "r1",
                    "user": {
                        "role_id": 2,
                        "id": 7,
                        "full_name": "Jane",
                        "email": "jane@pharmacy.test",
                    },
                },
            )
        )

        result = await auth.login("jane@pharmacy.test", "secret")

        assert result["success"] is True
        assert result["role"] == "manager"
        assert "requiresPasswordChange" not in result
        assert token_store.get("accessToken") == "t1"
        assert token_store.get("refreshToken") == "r1"
        assert token_store.get("userRole") == "manager"
        assert token_store.get("userId") == "7"
        assert token_store.get("userName") == "Jane"
        assert token_store.get("userEmail") == "jane@pharmacy.test"
        assert token_store.get("roleId") == "2"
        assert token_store.get("branchId") == ""

    @pytest.mark.asyncio
    async def test_request_shape(self, auth, token_store, mock_session, response_factory):
        """Test login posts credentials without an Authorization header."""
        token_store.set("accessToken", "stale")
        mock_session.request = MagicMock(return_value=response_factory(200, {"token": "t"}))

        await auth.login("jane@pharmacy.test", "secret")

        method, url, headers, body = _sent(mock_session)
        assert method == "POST"
        assert url == f"{BASE_URL}/auth/login"
        assert "Authorization" not in headers
        assert headers["Content-Type"] == "application/json"
        assert body == {"email": "jane@pharmacy.test", "password": "secret"}

    @pytest.mark.asyncio
    async def test_users_key_and_password_change(self, auth, token_store, mock_session, response_factory):
        mock_session.request = MagicMock(
            return_value=response_factory(
                200,
                {
                    "token": "t",
                    "users": {"user_id": 9, "name": "Sam", "role_id": 4},
                    "mustChangePassword": True,
                },
            )
        )

        result = await auth.login("sam@pharmacy.test", "secret")

        assert result["role"] == "cashier"
        assert result["requiresPasswordChange"] is True
        assert token_store.get("userId") == "9"
        assert token_store.get("userName") == "Sam"

    @pytest.mark.asyncio
    async def test_non_string_name_still_persists_session(
        self, auth, token_store, mock_session, response_factory
    ):
        mock_session.request = MagicMock(
            return_value=response_factory(
                200, {"token": "t", "user": {"id": 3, "full_name": 2024, "role_id": 1}}
            )
        )

        result = await auth.login("x@pharmacy.test", "secret")

        assert result["success"] is True
        assert token_store.get("accessToken") == "t"
        assert token_store.get("userName") == "2024"

    @pytest.mark.asyncio
    async def test_no_user_object(self, auth, token_store, mock_session, response_factory):
        mock_session.request = MagicMock(return_value=response_factory(200, {"token": "t"}))

        result = await auth.login("x@pharmacy.test", "secret")

        assert result["role"] == "user"
        assert token_store.get("userRole") == "user"
        assert token_store.get("userId") is None

    @pytest.mark.asyncio
    async def test_invalid_credentials(self, auth, token_store, navigator, mock_session, response_factory):
        """Test a 401 from login is an ordinary failure, not a session expiry."""
        mock_session.request = MagicMock(
            return_value=response_factory(401, {"message": "Invalid credentials"})
        )

        result = await auth.login("jane@pharmacy.test", "wrong")

        assert result == {"success": False, "message": "Invalid credentials"}
        assert token_store.get("accessToken") is None
        assert navigator.redirects == []


class TestLogout:
    """Tests for logout."""

    @pytest.mark.asyncio
    async def test_clears_session(self, auth, logged_in, mock_session):
        await auth.logout()

        method, url, headers, _ = _sent(mock_session)
        assert (method, url) == ("POST", f"{BASE_URL}/auth/logout")
        assert headers["Authorization"] == "Bearer access-abc"
        for key in SESSION_KEYS:
            assert logged_in.get(key) is None

    @pytest.mark.asyncio
    async def test_clears_session_on_server_error(self, auth, logged_in, mock_session, response_factory):
        mock_session.request = MagicMock(return_value=response_factory(500, {"message": "boom"}))

        await auth.logout()

        for key in SESSION_KEYS:
            assert logged_in.get(key) is None

    @pytest.mark.asyncio
    async def test_clears_session_on_timeout(self, auth, logged_in, mock_session):
        mock_session.request = MagicMock(side_effect=TimeoutError())

        await auth.logout()

        for key in SESSION_KEYS:
            assert logged_in.get(key) is None

    @pytest.mark.asyncio
    async def test_clears_session_on_network_failure(
        self, auth, logged_in, mock_session, mock_sleep
    ):
        mock_session.request = MagicMock(
            side_effect=aiohttp.ClientConnectionError("Connection refused")
        )

        await auth.logout()

        assert logged_in.load_session() is None

    @pytest.mark.asyncio
    async def test_skips_server_call_without_token(self, auth, token_store, mock_session):
        await auth.logout()

        mock_session.request.assert_not_called()
        assert token_store.generation == 1


class TestRefreshToken:
    """Tests for token refresh."""

    @pytest.mark.asyncio
    async def test_no_refresh_token(self, auth, mock_session):
        result = await auth.refresh_token()

        assert result == {"success": False, "message": NO_REFRESH_TOKEN_MESSAGE}
        mock_session.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_success_stores_token(self, auth, logged_in, mock_session, response_factory):
        mock_session.request = MagicMock(return_value=response_factory(200, {"token": "new-access"}))

        result = await auth.refresh_token()

        assert result["success"] is True
        assert logged_in.get("accessToken") == "new-access"
        assert logged_in.get("refreshToken") == "refresh-xyz"
        _, url, _, body = _sent(mock_session)
        assert url == f"{BASE_URL}/auth/refresh"
        assert body == {"refreshToken": "refresh-xyz"}

    @pytest.mark.asyncio
    async def test_failure_removes_tokens(self, auth, logged_in, mock_session, response_factory):
        mock_session.request = MagicMock(
            return_value=response_factory(400, {"message": "Refresh token revoked"})
        )

        result = await auth.refresh_token()

        assert result == {"success": False, "message": "Refresh token revoked"}
        assert logged_in.get("accessToken") is None
        assert logged_in.get("refreshToken") is None
        assert logged_in.get("userRole") == "manager"

    @pytest.mark.asyncio
    async def test_success_without_token(self, auth, logged_in, mock_session, response_factory):
        mock_session.request = MagicMock(return_value=response_factory(200, {}))

        result = await auth.refresh_token()

        assert result == {"success": False, "message": REFRESH_FAILED_MESSAGE}
        assert logged_in.get("accessToken") is None

    @pytest.mark.asyncio
    async def test_single_flight(self, auth, logged_in, mock_session, response_factory):
        """Test concurrent callers share one refresh request."""
        gate = asyncio.Event()
        mock_session.request = MagicMock(
            return_value=_gated(response_factory(200, {"token": "new-access"}), gate)
        )

        first = asyncio.create_task(auth.refresh_token())
        second = asyncio.create_task(auth.refresh_token())
        await _wait_for_request(mock_session)
        gate.set()
        results = await asyncio.gather(first, second)

        assert mock_session.request.call_count == 1
        assert results[0] == results[1]
        assert logged_in.get("accessToken") == "new-access"

    @pytest.mark.asyncio
    async def test_refresh_after_completion_runs_again(self, auth, logged_in, mock_session, response_factory):
        mock_session.request = MagicMock(return_value=response_factory(200, {"token": "new-access"}))

        await auth.refresh_token()
        await auth.refresh_token()

        assert mock_session.request.call_count == 2

    @pytest.mark.asyncio
    async def test_logout_during_refresh_wins(self, auth, logged_in, mock_session, response_factory):
        """Test a refresh that lands after logout does not restore the session."""
        gate = asyncio.Event()
        refresh_response = _gated(response_factory(200, {"token": "new-access"}), gate)
        logout_response = response_factory(200, {})

        def route(method, url, **kwargs):
            return refresh_response if url.endswith("/auth/refresh") else logout_response

        mock_session.request = MagicMock(side_effect=route)

        refresh = asyncio.create_task(auth.refresh_token())
        await _wait_for_request(mock_session)
        await auth.logout()
        gate.set()
        result = await refresh

        assert result == {"success": False, "message": REFRESH_SUPERSEDED_MESSAGE}
        assert logged_in.get("accessToken") is None
        assert auth.is_authenticated() is False

    @staticmethod
    def _route(refresh_response, response_factory):
        login_response = response_factory(
            200,
            {
                "token": "new-login-token",
                "refreshToken": "new-refresh-token",
                "user": {"id": 11, "full_name": "Ana", "role_id": 3},
            },
        )
        logout_response = response_factory(200, {})

        def route(method, url, **kwargs):
            if url.endswith("/auth/refresh"):
                return refresh_response
            if url.endswith("/auth/login"):
                return login_response
            return logout_response

        return route

    @pytest.mark.asyncio
    async def test_failed_refresh_after_relogin_keeps_new_session(
        self, auth, logged_in, mock_session, response_factory
    ):
        """Test a stale refresh failing after logout and login does not wipe the new tokens."""
        gate = asyncio.Event()
        refresh_response = _gated(
            response_factory(400, {"message": "Refresh token revoked"}), gate
        )
        mock_session.request = MagicMock(
            side_effect=self._route(refresh_response, response_factory)
        )

        refresh = asyncio.create_task(auth.refresh_token())
        await _wait_for_request(mock_session)
        await auth.logout()
        await auth.login("ana@pharmacy.test", "secret")
        gate.set()
        result = await refresh

        assert result == {"success": False, "message": REFRESH_SUPERSEDED_MESSAGE}
        assert logged_in.get("accessToken") == "new-login-token"
        assert logged_in.get("refreshToken") == "new-refresh-token"
        assert logged_in.get("userRole") == "pharmacist"

    @pytest.mark.asyncio
    async def test_successful_refresh_after_relogin_is_discarded(
        self, auth, logged_in, mock_session, response_factory
    ):
        """Test a token minted from the old refresh credential does not replace a new login."""
        gate = asyncio.Event()
        refresh_response = _gated(response_factory(200, {"token": "stale-refreshed"}), gate)
        mock_session.request = MagicMock(
            side_effect=self._route(refresh_response, response_factory)
        )

        refresh = asyncio.create_task(auth.refresh_token())
        await _wait_for_request(mock_session)
        await auth.login("ana@pharmacy.test", "secret")
        gate.set()
        result = await refresh

        assert result == {"success": False, "message": REFRESH_SUPERSEDED_MESSAGE}
        assert logged_in.get("accessToken") == "new-login-token"
        assert logged_in.get("refreshToken") == "new-refresh-token"


class TestVerifyToken:
    """Tests for verify_token."""

    @pytest.mark.asyncio
    async def test_without_token(self, auth, mock_session):
        result = await auth.verify_token()

        assert result == {"success": False, "message": NO_TOKEN_MESSAGE}
        mock_session.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_with_token(self, auth, logged_in, mock_session, response_factory):
        mock_session.request = MagicMock(return_value=response_factory(200, {"valid": True}))

        result = await auth.verify_token()

        assert result == {"success": True, "valid": True}
        method, url, _, _ = _sent(mock_session)
        assert (method, url) == ("POST", f"{BASE_URL}/auth/verify")


class TestAccountFlows:
    """Tests for account flow request bodies."""

    @pytest.mark.asyncio
    async def test_change_password(self, auth, logged_in, mock_session):
        await auth.change_password("old-secret", "new-secret")

        method, url, headers, body = _sent(mock_session)
        assert (method, url) == ("POST", f"{BASE_URL}/auth/change-password")
        assert headers["Authorization"] == "Bearer access-abc"
        assert body == {
            "current_password": "old-secret",
            "new_password": "new-secret",
            "new_password_confirmation": "new-secret",
        }

    @pytest.mark.asyncio
    async def test_register(self, auth, mock_session):
        await auth.register("Sam Lee", "sam@pharmacy.test", "secret", role_id=4, branch_id=2)

        _, url, headers, body = _sent(mock_session)
        assert url == f"{BASE_URL}/auth/register"
        assert "Authorization" not in headers
        assert body == {
            "full_name": "Sam Lee",
            "email": "sam@pharmacy.test",
            "password": "secret",
            "role_id": 4,
            "branch_id": 2,
        }

    @pytest.mark.asyncio
    async def test_reset_password(self, auth, mock_session):
        await auth.reset_password("reset-token", "new-secret")

        _, url, _, body = _sent(mock_session)
        assert url == f"{BASE_URL}/auth/reset-password"
        assert body == {"token": "reset-token", "newPassword": "new-secret"}

    @pytest.mark.asyncio
    async def test_verify_email(self, auth, mock_session):
        await auth.verify_email("sam@pharmacy.test", "123456")

        _, url, _, body = _sent(mock_session)
        assert url == f"{BASE_URL}/auth/verify-email"
        assert body == {"email": "sam@pharmacy.test", "verification_code": "123456"}

    @pytest.mark.asyncio
    async def test_update_profile_form_data(self, auth, logged_in, mock_session):
        """Test multipart bodies are sent without a JSON Content-Type."""
        form = aiohttp.FormData()
        form.add_field("full_name", "Jane Doe")

        await auth.update_profile(form)

        method, url, headers, body = _sent(mock_session)
        assert (method, url) == ("PUT", f"{BASE_URL}/auth/profile")
        assert "Content-Type" not in headers
        assert headers["Authorization"] == "Bearer access-abc"
        assert body is form

    @pytest.mark.asyncio
    async def test_update_profile_json(self, auth, logged_in, mock_session):
        await auth.update_profile({"full_name": "Jane Doe"})

        _, _, headers, body = _sent(mock_session)
        assert headers["Content-Type"] == "application/json"
        assert body == {"full_name": "Jane Doe"}


class TestSessionReads:
    """Tests for restore_session and local reads."""

    @pytest.mark.asyncio
    async def test_restore_valid_session(self, auth, logged_in, mock_session, response_factory):
        mock_session.request = MagicMock(return_value=response_factory(200, {"id": 7}))

        session = await auth.restore_session()

        assert session.user_name == "Jane"
        _, url, _, _ = _sent(mock_session)
        assert url == f"{BASE_URL}/auth/me"

    @pytest.mark.asyncio
    async def test_restore_rejected_session(self, auth, logged_in, navigator, mock_session, response_factory):
        mock_session.request = MagicMock(return_value=response_factory(401, {}))

        assert await auth.restore_session() is None
        assert logged_in.load_session() is None
        assert navigator.redirects == ["/login"]

    @pytest.mark.asyncio
    async def test_restore_without_token(self, auth, mock_session):
        assert await auth.restore_session() is None
        mock_session.request.assert_not_called()

    def test_user_role(self, auth, logged_in):
        assert auth.user_role() == UserRole.MANAGER
        assert auth.is_authenticated() is True

    def test_user_role_logged_out(self, auth):
        assert auth.user_role() is None
        assert auth.current_user() is None
