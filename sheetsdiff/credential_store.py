"""
CredentialStore — the one shared, mutable piece of a run.

Owns the current Credential, hands out access tokens that stay valid for a
minimum remaining lifetime, and refreshes them through a token endpoint.

Refreshes are single-flight: a lock serialises them and every caller re-checks
the token after acquiring it, so N workers that notice an expiring token at
the same moment cause one exchange, not N. Every successful refresh is
persisted before it is returned.

Usage:
    store = CredentialStore(token_file.load(), token_file, GoogleTokenEndpoint())
    token = store.ensure_valid().access_token
"""
from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from .errors import CredentialPersistenceError, RetryableAuthError, UnauthorizedError
from .models import Credential, TokenGrant

logger = logging.getLogger(__name__)

DEFAULT_MIN_LIFETIME = timedelta(seconds=60)


class TokenEndpoint(Protocol):
    def exchange(self, credential: Credential) -> TokenGrant: ...


class CredentialPersistence(Protocol):
    def save(self, credential: Credential) -> None: ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialStore:
    """
    Keeps an OAuth2 access token fresh.

    Args:
        credential:   Credential loaded at process start.
        persistence:  Anything with save(credential) (normally a CredentialFile).
        endpoint:     Anything with exchange(credential) -> TokenGrant.
        min_lifetime: ensure_valid() refreshes when less than this is left.
        clock:        Returns the current aware UTC datetime (injectable for tests).
        max_attempts: Total exchanges tried on RetryableAuthError before giving up.
                      Each exchange may already retry internally (see
                      google_auth.STORE_REFRESH_ATTEMPTS).
        backoff_base: First retry delay in seconds; doubles on each attempt.
        sleep:        Delay function (injectable for tests).
    """

    def __init__(
        self,
        credential: Credential,
        persistence: CredentialPersistence,
        endpoint: TokenEndpoint,
        *,
        min_lifetime: timedelta = DEFAULT_MIN_LIFETIME,
        clock: Callable[[], datetime] = utcnow,
        max_attempts: int = 4,
        backoff_base: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._credential = credential
        self._persistence = persistence
        self._endpoint = endpoint
        self._min_lifetime = min_lifetime
        self._clock = clock
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._sleep = sleep
        self._lock = threading.Lock()
        self._rejected: Optional[UnauthorizedError] = None

    @property
    def credential(self) -> Credential:
        return self._credential

    def _is_fresh(self, credential: Credential) -> bool:
        return credential.is_valid_for(self._clock(), self._min_lifetime)

    # ── Public interface ──────────────────────────────────────────────────────

    def ensure_valid(self) -> Credential:
        """
        Return a credential whose access token is valid for at least min_lifetime.

        Refreshes (with retry + exponential backoff on transient errors) when
        needed. Raises UnauthorizedError at once if the refresh token is rejected,
        RetryableAuthError once the attempts are used up.
        """
        current = self._credential
        if self._is_fresh(current):
            return current

        with self._lock:
            # Another caller may have refreshed while we waited for the lock
            current = self._credential
            if self._is_fresh(current):
                logger.debug("Token refreshed by a concurrent caller")
                return current
            return self._refresh_with_retry()

    def refresh(self) -> Credential:
        """
        Perform exactly one refresh exchange and persist the result.

        Raises RetryableAuthError or UnauthorizedError as classified by the
        endpoint; the caller decides whether to retry.
        """
        with self._lock:
            return self._exchange_and_persist()

    def force_refresh(self, rejected_token: Optional[str]) -> Credential:
        """
        Refresh because the API rejected rejected_token.

        If the current token is already a different one, some other caller has
        refreshed in the meantime and that credential is returned unchanged.
        """
        with self._lock:
            current = self._credential
            if current.access_token and current.access_token != rejected_token:
                logger.debug("Rejected token already replaced; skipping refresh")
                return current
            logger.info("Access token rejected by the API; forcing a refresh")
            return self._refresh_with_retry()

    # ── Internals (caller holds the lock) ─────────────────────────────────────

    def _refresh_with_retry(self) -> Credential:
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._exchange_and_persist()
            except RetryableAuthError as exc:
                if attempt >= self._max_attempts:
                    logger.error("Token refresh failed after %d attempt(s): %s", attempt, exc)
                    raise
                delay = self._backoff_base * (2 ** (attempt - 1))
                logger.warning(
                    "Token refresh attempt %d/%d failed (%s); retrying in %.1fs",
                    attempt, self._max_attempts, exc, delay,
                )
                self._sleep(delay)

    def _exchange_and_persist(self) -> Credential:
        # Once rejected, the refresh token is never sent again in this process
        if self._rejected is not None:
            raise UnauthorizedError(str(self._rejected)) from self._rejected
        try:
            grant = self._endpoint.exchange(self._credential)
        except UnauthorizedError as exc:
            self._rejected = exc
            logger.critical("Refresh token rejected: %s", exc)
            raise
        updated = self._credential.with_grant(grant)
        # In-memory credential is updated even when the write below fails
        self._credential = updated
        try:
            self._persistence.save(updated)
        except OSError as exc:
            raise CredentialPersistenceError(f"Cannot persist refreshed credential: {exc}") from exc

        if updated.access_token_expiry is not None:
            logger.info(
                "Access token refreshed (expires %s)",
                updated.access_token_expiry.isoformat(timespec="seconds"),
            )
        else:
            logger.info("Access token refreshed")
        return updated
