"""
Google OAuth2 plumbing: token file persistence, the refresh-token exchange and
the interactive consent flow.

The token file is google-auth's "authorized user" JSON, so a file written by
any google-auth based tool (or by scripts/authorize.py) can be used as-is.

Usage:
    token_file = CredentialFile("~/cred/google_token.json")
    credential = token_file.load()
    grant = GoogleTokenEndpoint().exchange(credential)
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import requests
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from .errors import (
    CredentialPersistenceError,
    RetryableAuthError,
    UnauthorizedError,
)
from .fileio import atomic_write_text
from .models import Credential, TokenGrant

logger = logging.getLogger(__name__)

# Read-only access is all a diff run needs
SCOPES: list[str] = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
]

# OAuth error codes that mean the refresh token itself is no good
_PERMANENT_ERRORS = {"invalid_grant", "invalid_client", "unauthorized_client"}

# google-auth already retries retryable token-endpoint errors inside one
# exchange, so CredentialStore only adds a second outer attempt on top
STORE_REFRESH_ATTEMPTS = 2


# ── google-auth conversion ────────────────────────────────────────────────────

def _as_utc(expiry: Optional[datetime]) -> Optional[datetime]:
    """google-auth keeps expiry as a naive UTC datetime; make it aware."""
    if expiry is None:
        return None
    if expiry.tzinfo is None:
        return expiry.replace(tzinfo=timezone.utc)
    return expiry.astimezone(timezone.utc)


def _as_naive_utc(expiry: Optional[datetime]) -> Optional[datetime]:
    if expiry is None:
        return None
    if expiry.tzinfo is not None:
        expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)
    return expiry


def to_google_credentials(credential: Credential, include_access_token: bool = True) -> Credentials:
    return Credentials(
        token=credential.access_token if include_access_token else None,
        refresh_token=credential.refresh_token,
        token_uri=credential.token_uri,
        client_id=credential.client_id,
        client_secret=credential.client_secret,
        scopes=list(credential.scopes) or None,
        expiry=_as_naive_utc(credential.access_token_expiry) if include_access_token else None,
    )


def from_google_credentials(creds: Credentials) -> Credential:
    return Credential(
        access_token=creds.token,
        access_token_expiry=_as_utc(creds.expiry),
        refresh_token=creds.refresh_token,
        client_id=creds.client_id,
        client_secret=creds.client_secret,
        token_uri=creds.token_uri or Credential.token_uri,
        scopes=tuple(creds.scopes or ()),
    )


# ── Token file ────────────────────────────────────────────────────────────────

class CredentialFile:
    """
    The persisted Credential, stored as authorized-user JSON.

    save() replaces the file atomically, so a crash mid-write leaves the
    previous token file intact.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Credential:
        """
        Read the credential.

        A missing file or a file without a refresh token raises UnauthorizedError
        (only a fresh consent can fix it); an unreadable file raises
        CredentialPersistenceError.
        """
        if not self.path.exists():
            raise UnauthorizedError(
                f"No token file at {self.path}; run scripts/authorize.py first"
            )
        try:
            info = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CredentialPersistenceError(f"Cannot read token file {self.path}: {exc}") from exc

        try:
            creds = Credentials.from_authorized_user_info(info)
        except ValueError as exc:
            raise UnauthorizedError(f"Token file {self.path} is incomplete: {exc}") from exc

        logger.debug("Loaded credential from %s", self.path)
        return from_google_credentials(creds)

    def save(self, credential: Credential) -> None:
        payload = to_google_credentials(credential).to_json()
        try:
            atomic_write_text(self.path, payload)
        except OSError as exc:
            raise CredentialPersistenceError(f"Cannot write token file {self.path}: {exc}") from exc
        logger.debug("Saved credential to %s", self.path)

    def delete(self) -> bool:
        """Remove the token file. Returns True if one was deleted."""
        if self.path.exists():
            self.path.unlink()
            return True
        return False


# ── Token endpoint ────────────────────────────────────────────────────────────

def _is_permanent(exc: RefreshError) -> bool:
    if len(exc.args) > 1 and isinstance(exc.args[1], dict):
        if exc.args[1].get("error") in _PERMANENT_ERRORS:
            return True
    message = str(exc.args[0]) if exc.args else ""
    return any(code in message for code in _PERMANENT_ERRORS)


class GoogleTokenEndpoint:
    """
    Exchanges a refresh token for a new access token at Google's token URI.

    Errors are classified for the Credential Store:
        transport failure, 5xx, 429           -> RetryableAuthError
        invalid_grant and other 4xx rejections -> UnauthorizedError

    One exchange may send several token requests: google-auth retries
    retryable failures itself before raising. Pair it with a CredentialStore
    built with max_attempts=STORE_REFRESH_ATTEMPTS.
    """

    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self._session = session

    def exchange(self, credential: Credential) -> TokenGrant:
        creds = to_google_credentials(credential, include_access_token=False)
        try:
            creds.refresh(Request(session=self._session))
        except TransportError as exc:
            raise RetryableAuthError(f"Token endpoint unreachable: {exc}") from exc
        except RefreshError as exc:
            if exc.retryable and not _is_permanent(exc):
                raise RetryableAuthError(f"Token endpoint temporarily failed: {exc}") from exc
            raise UnauthorizedError(
                f"Refresh token rejected ({exc}); run scripts/authorize.py to re-authenticate"
            ) from exc

        return TokenGrant(
            access_token=creds.token,
            expiry=_as_utc(creds.expiry),
            refresh_token=creds.refresh_token,
        )


# ── Interactive consent ───────────────────────────────────────────────────────

def run_consent_flow(
    client_secret_file: Path | str,
    token_file: CredentialFile,
    scopes: Optional[list[str]] = None,
) -> Credential:
    """
    Run the browser consent flow and persist the resulting credential.
    Only needed on first use or after the refresh token was revoked.
    """
    flow = InstalledAppFlow.from_client_secrets_file(
        str(Path(client_secret_file).expanduser()), scopes or SCOPES
    )
    creds = flow.run_local_server(port=0)
    logger.info("OAuth flow completed")

    credential = from_google_credentials(creds)
    token_file.save(credential)
    logger.info("Token saved to %s", token_file.path)
    return credential
