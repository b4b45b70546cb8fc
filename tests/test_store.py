# Tests for twitch/store.py

import stat

import pytest

from twitchplays.twitch.models import AccessToken, ClientRegistration, TokenRecord
from twitchplays.twitch.store import CLIENT_FILE, TOKEN_FILE, CredentialStore


@pytest.fixture
def store(tmp_path):
    return CredentialStore(tmp_path)


class TestClientRecord:
    def test_missing(self, store, tmp_path):
        assert store.read_client() is None
        assert not (tmp_path / CLIENT_FILE).exists()

    def test_save_and_load(self, store):
        store.write_client(ClientRegistration("abc", "shh", "http://localhost:9000/"))
        loaded = store.read_client()
        assert loaded == ClientRegistration("abc", "shh", "http://localhost:9000/")

    def test_partial_record_fills_defaults(self, store, tmp_path):
        (tmp_path / CLIENT_FILE).write_text('{"client_id": "abc"}')
        loaded = store.read_client()
        assert loaded.client_id == "abc"
        assert loaded.client_secret == ""
        assert loaded.redirect_uri == ""

    def test_corrupt_file(self, store, tmp_path):
        (tmp_path / CLIENT_FILE).write_text("{not json")
        assert store.read_client() is None


class TestTokenRecord:
    def test_round_trip_with_token(self, store):
        record = TokenRecord(
            user_name="alice",
            user_id="42",
            access_token=AccessToken("acc", "ref", 1700000000.0),
        )
        store.write_tokens(record)
        assert store.read_tokens() == record

    def test_empty_record(self, store):
        store.write_tokens(TokenRecord())
        loaded = store.read_tokens()
        assert loaded == TokenRecord()
        assert loaded.access_token is None

    def test_non_object_json(self, store, tmp_path):
        (tmp_path / TOKEN_FILE).write_text("[1, 2]")
        assert store.read_tokens() is None

    def test_bad_token_fields(self, store, tmp_path):
        (tmp_path / TOKEN_FILE).write_text('{"access_token": {"bogus": 1}}')
        assert store.read_tokens() is None

    def test_file_permissions(self, store, tmp_path):
        store.write_tokens(TokenRecord(access_token=AccessToken("secret")))
        mode = (tmp_path / TOKEN_FILE).stat().st_mode
        # Owner read+write only
        assert mode & stat.S_IRUSR
        assert mode & stat.S_IWUSR
        assert not (mode & stat.S_IRGRP)
        assert not (mode & stat.S_IROTH)


def test_default_directory_comes_from_config(tmp_path, monkeypatch):
    monkeypatch.setattr("twitchplays.twitch.store.get_config_dir", lambda: tmp_path)
    store = CredentialStore()
    store.write_client(ClientRegistration("id"))
    assert (tmp_path / CLIENT_FILE).exists()
