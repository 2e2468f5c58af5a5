"""
Tests for TokenStore.

Tests cover:
- Durable storage used when the availability check succeeds
- Fallback storage when durable storage fails
- Accessors never raising
- Session teardown and the generation counter
- The no-token session invariant
"""

from unittest.mock import MagicMock

from pharmacy_client.auth.session import SESSION_KEYS
from pharmacy_client.auth.storage import FileStorage, MemoryStorage
from pharmacy_client.auth.token_store import SENTINEL_KEY, TokenStore


class TestStorageSelection:
    """Tests for check-and-fallback selection."""

    def test_durable_used_when_available(self, tmp_path):
        durable = FileStorage(tmp_path / "session.json")
        fallback = MemoryStorage()
        store = TokenStore(durable, fallback)

        store.set("accessToken", "abc")

        assert durable.get_item("accessToken") == "abc"
        assert fallback.get_item("accessToken") is None
        assert store.get("accessToken") == "abc"

    def test_sentinel_key_not_left_behind(self, tmp_path):
        durable = FileStorage(tmp_path / "session.json")
        store = TokenStore(durable)

        store.set("accessToken", "abc")

        assert durable.get_item(SENTINEL_KEY) is None

    def test_fallback_when_durable_broken(self, broken_storage):
        fallback = MemoryStorage()
        store = TokenStore(broken_storage, fallback)

        assert store.is_available() is False
        store.set("accessToken", "abc")

        assert fallback.get_item("accessToken") == "abc"
        assert store.get("accessToken") == "abc"

    def test_availability_checked_per_operation(self):
        durable = MagicMock()
        durable.get_item.return_value = "abc"
        store = TokenStore(durable)

        store.get("accessToken")
        store.get("refreshToken")

        assert durable.set_item.call_count == 2
        durable.set_item.assert_called_with(SENTINEL_KEY, SENTINEL_KEY)

    def test_accessors_never_raise(self, broken_storage):
        store = TokenStore(broken_storage, broken_storage)

        store.set("accessToken", "abc")
        store.remove("accessToken")
        store.clear_session()
        assert store.get("accessToken") is None
        assert store.load_session() is None

    def test_values_stored_as_strings(self, token_store):
        token_store.set("userId", 7)
        assert token_store.get("userId") == "7"


class TestSession:
    """Tests for session helpers."""

    def test_load_session(self, logged_in):
        session = logged_in.load_session()

        assert session.access_token == "access-abc"
        assert session.refresh_token == "refresh-xyz"
        assert session.role == "manager"
        assert session.user_id == "7"
        assert session.user_name == "Jane"
        assert session.email == "jane@pharmacy.test"
        assert session.role_id == "2"
        assert session.branch_id == "3"

    def test_no_access_token_hides_identity(self, logged_in):
        """Test stale identity fields are not exposed without a credential."""
        logged_in.remove("accessToken")

        assert logged_in.get("userRole") == "manager"
        assert logged_in.load_session() is None

    def test_clear_session_removes_all_keys(self, logged_in):
        logged_in.set("unrelated", "keep")

        logged_in.clear_session()

        for key in SESSION_KEYS:
            assert logged_in.get(key) is None
        assert logged_in.get("unrelated") == "keep"

    def test_clear_session_bumps_generation(self, token_store):
        assert token_store.generation == 0
        token_store.clear_session()
        token_store.clear_session()
        assert token_store.generation == 2

    def test_begin_session_bumps_generation_and_keeps_fields(self, logged_in):
        assert logged_in.begin_session() == 1
        assert logged_in.generation == 1
        assert logged_in.get("accessToken") == "access-abc"

    def test_save_session_skips_none(self, token_store):
        token_store.save_session(access_token="abc", role="cashier")

        assert token_store.get("accessToken") == "abc"
        assert token_store.get("userRole") == "cashier"
        assert token_store.get("userId") is None

    def test_session_to_dict_excludes_credentials(self, logged_in):
        data = logged_in.load_session().to_dict()
        assert "accessToken" not in data
        assert "refreshToken" not in data
        assert data["role"] == "manager"
