"""Shared fixtures for pharmacy_client tests."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from pharmacy_client.auth.storage import MemoryStorage
from pharmacy_client.auth.token_store import TokenStore
from pharmacy_client.config import ClientConfig
from pharmacy_client.http.client import ApiClient

BASE_URL = "http://api.test"


class FakeNavigator:
    """Records redirects instead of navigating."""

    def __init__(self, current_path: str = "/dashboard"):
        self.current_path = current_path
        self.redirects: list[str] = []

    def redirect(self, path: str) -> None:
        self.redirects.append(path)
        self.current_path = path


class BrokenStorage:
    """Storage backend that fails every operation, like a read-only disk."""

    def get_item(self, key):
        raise OSError("Read-only file system")

    def set_item(self, key, value):
        raise OSError("Read-only file system")

    def remove_item(self, key):
        raise OSError("Read-only file system")

    def clear(self):
        raise OSError("Read-only file system")


def make_response(status=200, json_body=None, body=b"", headers=None):
    """Create a mock aiohttp response usable as an async context manager."""
    if json_body is not None:
        body = json.dumps(json_body).encode()
    response = AsyncMock()
    response.status = status
    response.reason = "OK" if 200 <= status < 300 else "Error"
    response.headers = headers or {"Content-Type": "application/json"}
    response.read = AsyncMock(return_value=body)
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response


def populate_session(store: TokenStore) -> None:
    store.save_session(
        access_token="access-abc",
        refresh_token="refresh-xyz",
        role="manager",
        user_id="7",
        user_name="Jane",
        email="jane@pharmacy.test",
        role_id="2",
        branch_id="3",
    )


@pytest.fixture
def config(tmp_path):
    return ClientConfig(
        base_url=BASE_URL,
        timeout_seconds=5,
        storage_path=tmp_path / "session.json",
    )


@pytest.fixture
def token_store():
    return TokenStore(MemoryStorage())


@pytest.fixture
def navigator():
    return FakeNavigator()


@pytest.fixture
def mock_session():
    session = AsyncMock()
    session.closed = False
    session.request = MagicMock(return_value=make_response(200, {}))
    return session


@pytest.fixture
def mock_sleep():
    return AsyncMock(return_value=None)


@pytest.fixture
def client(config, token_store, navigator, mock_session, mock_sleep):
    return ApiClient(
        config,
        token_store=token_store,
        navigator=navigator,
        session=mock_session,
        sleep=mock_sleep,
    )


@pytest.fixture
def response_factory():
    """Factory for mock aiohttp responses."""
    return make_response


@pytest.fixture
def broken_storage():
    return BrokenStorage()


@pytest.fixture
def logged_in(token_store):
    """Token store holding a complete manager session."""
    populate_session(token_store)
    return token_store
