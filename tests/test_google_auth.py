import json
from datetime import datetime, timezone

import pytest
from google.auth.exceptions import RefreshError, TransportError
from google.oauth2.credentials import Credentials

from fakes import MemoryPersistence
from sheetsdiff.credential_store import CredentialStore
from sheetsdiff.errors import CredentialPersistenceError, RetryableAuthError, UnauthorizedError
from sheetsdiff.google_auth import STORE_REFRESH_ATTEMPTS, CredentialFile, GoogleTokenEndpoint
from sheetsdiff.models import Credential

TOKEN_INFO = {
    "token": "ya29.access",
    "refresh_token": "1//refresh",
    "token_uri": "https://oauth2.googleapis.com/token",
    "client_id": "123.apps.googleusercontent.com",
    "client_secret": "shh",
    "scopes": ["https://www.googleapis.com/auth/spreadsheets.readonly"],
    "expiry": "2026-01-01T13:00:00.000000Z",
}


def _credential(**overrides):
    fields = dict(
        refresh_token="1//refresh",
        client_id="cid",
        client_secret="secret",
        access_token="old",
        access_token_expiry=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return Credential(**fields)


# ── Token file ────────────────────────────────────────────────────────────────

def test_load_reads_authorized_user_json(tmp_path):
    path = tmp_path / "token.json"
    path.write_text(json.dumps(TOKEN_INFO))

    credential = CredentialFile(path).load()

    assert credential.access_token == "ya29.access"
    assert credential.refresh_token == "1//refresh"
    assert credential.client_id == "123.apps.googleusercontent.com"
    assert credential.access_token_expiry == datetime(2026, 1, 1, 13, 0, tzinfo=timezone.utc)
    assert credential.scopes == ("https://www.googleapis.com/auth/spreadsheets.readonly",)


def test_saved_file_is_readable_by_google_auth(tmp_path):
    path = tmp_path / "nested" / "token.json"
    credential = _credential(access_token_expiry=datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc))

    CredentialFile(path).save(credential)

    creds = Credentials.from_authorized_user_file(str(path))
    assert creds.token == "old"
    assert creds.refresh_token == "1//refresh"
    assert creds.expiry == datetime(2026, 3, 1, 8, 30)
    assert CredentialFile(path).load() == credential
    assert [p.name for p in path.parent.iterdir()] == ["token.json"]


def test_missing_file_requires_reauth(tmp_path):
    with pytest.raises(UnauthorizedError):
        CredentialFile(tmp_path / "nope.json").load()


def test_file_without_refresh_token_requires_reauth(tmp_path):
    path = tmp_path / "token.json"
    info = dict(TOKEN_INFO)
    del info["refresh_token"]
    path.write_text(json.dumps(info))

    with pytest.raises(UnauthorizedError):
        CredentialFile(path).load()


def test_corrupt_file(tmp_path):
    path = tmp_path / "token.json"
    path.write_text("{not json")

    with pytest.raises(CredentialPersistenceError):
        CredentialFile(path).load()


def test_delete(tmp_path):
    path = tmp_path / "token.json"
    path.write_text(json.dumps(TOKEN_INFO))
    token_file = CredentialFile(path)

    assert token_file.delete() is True
    assert token_file.delete() is False


# ── Token endpoint ────────────────────────────────────────────────────────────

def test_exchange_returns_grant(monkeypatch):
    seen = {}

    def fake_refresh(self, request):
        seen["token_before"] = self.token
        seen["refresh_token"] = self.refresh_token
        self.token = "new-access"
        self.expiry = datetime(2026, 1, 1, 13, 0)

    monkeypatch.setattr(Credentials, "refresh", fake_refresh)

    grant = GoogleTokenEndpoint().exchange(_credential())

    assert seen == {"token_before": None, "refresh_token": "1//refresh"}
    assert grant.access_token == "new-access"
    assert grant.expiry == datetime(2026, 1, 1, 13, 0, tzinfo=timezone.utc)
    assert grant.refresh_token == "1//refresh"


def _raise(exc):
    def fake_refresh(self, request):
        raise exc
    return fake_refresh


def test_invalid_grant_is_unauthorized(monkeypatch):
    exc = RefreshError(
        "invalid_grant: Token has been expired or revoked.",
        {"error": "invalid_grant", "error_description": "Token has been expired or revoked."},
    )
    monkeypatch.setattr(Credentials, "refresh", _raise(exc))

    with pytest.raises(UnauthorizedError):
        GoogleTokenEndpoint().exchange(_credential())


def test_retryable_refresh_error(monkeypatch):
    exc = RefreshError("server_error", {"error": "server_error"}, retryable=True)
    monkeypatch.setattr(Credentials, "refresh", _raise(exc))

    with pytest.raises(RetryableAuthError):
        GoogleTokenEndpoint().exchange(_credential())


def test_transport_error_is_retryable(monkeypatch):
    monkeypatch.setattr(Credentials, "refresh", _raise(TransportError("connection reset")))

    with pytest.raises(RetryableAuthError):
        GoogleTokenEndpoint().exchange(_credential())


def test_store_bounds_outer_refresh_attempts(monkeypatch):
    calls = []

    def fake_refresh(self, request):
        calls.append(1)
        raise RefreshError("server_error", {"error": "server_error"}, retryable=True)

    monkeypatch.setattr(Credentials, "refresh", fake_refresh)
    store = CredentialStore(_credential(), MemoryPersistence(), GoogleTokenEndpoint(),
                            max_attempts=STORE_REFRESH_ATTEMPTS, sleep=lambda s: None)

    with pytest.raises(RetryableAuthError):
        store.ensure_valid()
    assert len(calls) == STORE_REFRESH_ATTEMPTS
