"""
Exception hierarchy for sheetsdiff.

Every error raised on purpose by the library derives from SheetsDiffError so
scripts can catch the whole family in one place. The three branches map to the
three collaborators that can fail:

    AuthError   — token refresh / credential persistence (fatal for the run)
    FetchError  — reading one sheet (local to that sheet)
    StoreError  — reading or writing one sheet's snapshot (local to that sheet)
"""
from __future__ import annotations


class SheetsDiffError(Exception):
    """Base class for all sheetsdiff errors."""


class ConfigError(SheetsDiffError):
    """A configuration value is missing or malformed."""


# ── Credentials ───────────────────────────────────────────────────────────────

class AuthError(SheetsDiffError):
    """The access credential could not be obtained. No sheet can be fetched."""


class RetryableAuthError(AuthError):
    """Transient failure talking to the token endpoint (network, 5xx, 429)."""


class UnauthorizedError(AuthError):
    """
    The refresh token was rejected (revoked, expired, invalid_grant).

    Recovery needs an interactive re-consent, so this is never retried.
    """

    def __init__(self, message: str = "") -> None:
        super().__init__(
            message or "Refresh token rejected; run scripts/authorize.py to re-authenticate"
        )


class CredentialPersistenceError(AuthError):
    """A refresh succeeded but the new credential could not be written to disk."""


# ── Sheet fetching ────────────────────────────────────────────────────────────

class FetchError(SheetsDiffError):
    """Reading a sheet failed."""

    def __init__(self, sheet_id: str, message: str = "") -> None:
        self.sheet_id = sheet_id
        super().__init__(f"{sheet_id}: {message}" if message else sheet_id)


class RetryableFetchError(FetchError):
    """Timeout, transport error, rate limit or server error; worth another try."""


class NotFoundError(FetchError):
    """The sheet does not exist or is not shared with the account."""


class UnauthorizedFetchError(FetchError):
    """The API rejected the access token (HTTP 401)."""


# ── Snapshot persistence ──────────────────────────────────────────────────────

class StoreError(SheetsDiffError):
    """Snapshot persistence failed for a reason other than 'no snapshot yet'."""


# ── Notifications ─────────────────────────────────────────────────────────────

class NotificationError(SheetsDiffError):
    """Posting a change notification to the webhook failed."""
