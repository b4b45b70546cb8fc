# Tests for twitch/tokens.py

import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from twitchplays.errors import TokenRefreshError
from twitchplays.twitch.api import TwitchAuthApi
from twitchplays.twitch.models import (
    AccessToken,
    ClientRegistration,
    TokenRecord,
    ValidationResult,
)
from twitchplays.twitch.store import CredentialStore
from twitchplays.twitch.tokens import TokenLifecycleManager

REGISTRATION = ClientRegistration("cid", "secret", "http://localhost:9000/")


def _result(login="alice", user_id="42", scopes=("chat:read",)):
    return ValidationResult(client_id="cid", login=login, user_id=user_id, scopes=frozenset(scopes))


@pytest.fixture
def store(tmp_path):
    return CredentialStore(tmp_path)


@pytest.fixture
def api():
    api = MagicMock(spec=TwitchAuthApi)
    api.validate = AsyncMock()
    api.refresh = AsyncMock()
    return api


@pytest.fixture
def manager(api, store):
    return TokenLifecycleManager(api, store, ["chat:read"])


class TestValidateAndRefresh:
    async def test_no_token(self, manager, api, store):
        assert await manager.validate_and_refresh(REGISTRATION, TokenRecord()) is False
        api.validate.assert_not_awaited()
        assert store.has_tokens() is False

    async def test_first_validation_adopts_identity(self, manager, api, store):
        api.validate.return_value = _result()
        record = TokenRecord(access_token=AccessToken("acc", "ref"))

        assert await manager.validate_and_refresh(REGISTRATION, record) is True
        assert record.user_name == "alice"
        assert record.user_id == "42"
        assert store.read_tokens() == record

    async def test_first_validation_missing_scope(self, manager, api, store):
        api.validate.return_value = _result(scopes=())
        record = TokenRecord(access_token=AccessToken("acc", "ref"))

        assert await manager.validate_and_refresh(REGISTRATION, record) is False
        assert record.access_token is None
        assert store.has_tokens() is False

    async def test_identity_mismatch_clears_token(self, manager, api, store):
        api.validate.return_value = _result(login="bob")
        record = TokenRecord("alice", "42", AccessToken("acc", "ref"))

        assert await manager.validate_and_refresh(REGISTRATION, record) is False
        assert record.access_token is None
        assert store.has_tokens() is False

    async def test_scope_lost_clears_token(self, manager, api):
        api.validate.return_value = _result(scopes=("user:read:email",))
        record = TokenRecord("alice", "42", AccessToken("acc", "ref"))

        assert await manager.validate_and_refresh(REGISTRATION, record) is False
        assert record.access_token is None

    async def test_extra_scopes_are_fine(self, manager, api):
        api.validate.return_value = _result(scopes=("chat:read", "chat:edit"))
        record = TokenRecord("alice", "42", AccessToken("acc", "ref"))
        assert await manager.validate_and_refresh(REGISTRATION, record) is True

    async def test_invalid_token_is_refreshed(self, manager, api, store):
        api.validate.side_effect = [None, _result(login="alice2", user_id="43")]
        api.refresh.return_value = AccessToken("new", "ref2", 999.0)
        record = TokenRecord("alice", "42", AccessToken("old", "ref"))

        assert await manager.validate_and_refresh(REGISTRATION, record) is True
        api.refresh.assert_awaited_once_with("cid", "secret", "ref")
        assert record.access_token.value == "new"
        assert record.user_name == "alice2"
        assert record.user_id == "43"
        assert store.read_tokens().access_token.value == "new"

    async def test_refreshed_token_that_fails_validation(self, manager, api):
        api.validate.side_effect = [None, None]
        api.refresh.return_value = AccessToken("new", "ref2")
        record = TokenRecord("alice", "42", AccessToken("old", "ref"))

        assert await manager.validate_and_refresh(REGISTRATION, record) is True
        assert record.user_name == ""
        assert record.user_id == ""

    async def test_refresh_rejected(self, manager, api, store):
        api.validate.return_value = None
        api.refresh.return_value = None
        record = TokenRecord("alice", "42", AccessToken("old", "ref"))

        assert await manager.validate_and_refresh(REGISTRATION, record) is False
        assert record.access_token is None
        assert api.validate.await_count == 1
        assert store.has_tokens() is False

    async def test_unexpected_failure_propagates(self, manager, api):
        api.validate.side_effect = TokenRefreshError("Token validation failed: boom")
        record = TokenRecord("alice", "42", AccessToken("acc", "ref"))

        with pytest.raises(TokenRefreshError):
            await manager.validate_and_refresh(REGISTRATION, record)

    async def test_idempotent_on_valid_token(self, manager, api, store):
        api.validate.return_value = _result()
        record = TokenRecord("alice", "42", AccessToken("acc", "ref", 1234.0))

        assert await manager.validate_and_refresh(REGISTRATION, record) is True
        first = store.read_tokens()
        assert await manager.validate_and_refresh(REGISTRATION, record) is True

        expected = TokenRecord("alice", "42", AccessToken("acc", "ref", 1234.0))
        assert store.read_tokens() == first == expected
        api.refresh.assert_not_awaited()


class TestLoadAndClear:
    async def test_load_without_stored_record(self, manager, api):
        record = await manager.load_tokens(REGISTRATION)
        assert record == TokenRecord()
        api.validate.assert_not_awaited()

    async def test_load_returns_record_even_when_unusable(self, manager, api, store):
        store.write_tokens(TokenRecord("alice", "42", AccessToken("acc", "ref")))
        api.validate.return_value = _result(login="bob")

        record = await manager.load_tokens(REGISTRATION)
        assert record.user_name == "alice"
        assert record.access_token is None

    async def test_load_valid(self, manager, api, store):
        store.write_tokens(TokenRecord("alice", "42", AccessToken("acc", "ref")))
        api.validate.return_value = _result()

        record = await manager.load_tokens(REGISTRATION)
        assert record.access_token.value == "acc"

    def test_clear_tokens(self, manager, store):
        store.write_tokens(TokenRecord("alice", "42", AccessToken("acc", "ref")))
        manager.clear_tokens()
        assert store.read_tokens() == TokenRecord()

    def test_clear_without_record_writes_nothing(self, manager, store):
        manager.clear_tokens()
        assert store.has_tokens() is False


class TestRefreshIfExpired:
    async def test_not_expired(self, manager, api):
        record = TokenRecord("alice", "42", AccessToken("acc", "ref", time.time() + 600))
        assert await manager.refresh_if_expired(REGISTRATION, record) is False
        api.refresh.assert_not_awaited()

    async def test_no_expiration(self, manager, api):
        record = TokenRecord("alice", "42", AccessToken("acc", "ref", None))
        assert await manager.refresh_if_expired(REGISTRATION, record) is False

    async def test_expired_is_refreshed(self, manager, api, store):
        api.refresh.return_value = AccessToken("new", "", time.time() + 3600)
        record = TokenRecord("alice", "42", AccessToken("acc", "ref", time.time() - 1))

        assert await manager.refresh_if_expired(REGISTRATION, record) is True
        assert record.access_token.value == "new"
        # Twitch may omit a new refresh token; keep the old one.
        assert record.access_token.refresh_value == "ref"
        assert store.read_tokens().access_token.value == "new"

    async def test_expired_refresh_rejected(self, manager, api):
        api.refresh.return_value = None
        record = TokenRecord("alice", "42", AccessToken("acc", "ref", time.time() - 1))

        with pytest.raises(TokenRefreshError, match="alice"):
            await manager.refresh_if_expired(REGISTRATION, record)
