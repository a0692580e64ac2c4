"""
SheetsFetcher — reads one sheet's values through the Google Sheets API v4.

Values are requested UNFORMATTED, so numbers and booleans arrive typed and the
diff engine can compare them by value. Every HTTP failure is turned into one of
the FetchError subclasses the orchestrator knows how to handle.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httplib2
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .errors import NotFoundError, RetryableFetchError, UnauthorizedFetchError
from .models import SheetId, Snapshot

logger = logging.getLogger(__name__)

DEFAULT_RANGE = "A:ZZ"

# Type alias for the service factory: (access_token, timeout) -> sheets service
ServiceBuilder = Callable[[str, float], Any]


def split_sheet_id(sheet_id: SheetId, default_range: str = DEFAULT_RANGE) -> tuple[str, str]:
    """
    Split "SPREADSHEET_ID/RANGE" into its parts.

    Spreadsheet ids never contain "/", so everything after the first one is the
    A1 range (which may itself contain "/" inside a sheet name).
    """
    spreadsheet_id, _, range_name = sheet_id.partition("/")
    return spreadsheet_id.strip(), (range_name.strip() or default_range)


def build_sheets_service(access_token: str, timeout: float) -> Any:
    """
    Build a Sheets v4 service bound to a bare access token.

    Token refresh is the CredentialStore's job, so the transport must not try
    to refresh on 401 itself (refresh_status_codes=()).
    """
    creds = Credentials(token=access_token)
    http = AuthorizedHttp(
        creds,
        http=httplib2.Http(timeout=timeout),
        refresh_status_codes=(),
    )
    return build("sheets", "v4", http=http, cache_discovery=False, static_discovery=True)


class SheetsFetcher:
    """
    Sheet Fetcher backed by spreadsheets.values.get.

    Usage:
        fetcher  = SheetsFetcher(default_range="Sheet1!A:F", timeout=5)
        snapshot = fetcher.fetch("1abcDEF", access_token)

    httplib2 connections are not thread-safe, so built services are cached per
    thread and per access token.
    """

    def __init__(
        self,
        default_range: str = DEFAULT_RANGE,
        timeout: float = 5.0,
        service_builder: Optional[ServiceBuilder] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.default_range = default_range
        self.timeout = timeout
        self._builder = service_builder or build_sheets_service
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._local = threading.local()

    # ── Internal builder ──────────────────────────────────────────────────────

    def _service(self, access_token: str) -> Any:
        cached = getattr(self._local, "service", None)
        if cached is not None and cached[0] == access_token:
            return cached[1]
        svc = self._builder(access_token, self.timeout)
        self._local.service = (access_token, svc)
        return svc

    # ── Read ──────────────────────────────────────────────────────────────────

    def fetch(self, sheet_id: SheetId, access_token: str) -> Snapshot:
        """
        Return the current contents of sheet_id as a Snapshot.

        Raises:
            RetryableFetchError:    timeout, connection problem, 429 or 5xx
            NotFoundError:          404, or 403 (not shared with this account)
            UnauthorizedFetchError: 401 — the access token was rejected
        """
        spreadsheet_id, range_name = split_sheet_id(sheet_id, self.default_range)
        logger.debug("Fetching %s range %s", spreadsheet_id, range_name)

        try:
            resp = self._service(access_token).spreadsheets().values().get(
                spreadsheetId=spreadsheet_id,
                range=range_name,
                valueRenderOption="UNFORMATTED_VALUE",
                dateTimeRenderOption="FORMATTED_STRING",
            ).execute()
        except HttpError as exc:
            raise _classify_http_error(sheet_id, exc) from exc
        except RefreshError as exc:
            raise UnauthorizedFetchError(sheet_id, f"access token rejected: {exc}") from exc
        except (OSError, httplib2.HttpLib2Error) as exc:
            # socket timeouts are OSError (TimeoutError)
            raise RetryableFetchError(sheet_id, f"transport error: {exc!r}") from exc

        values = resp.get("values", [])
        logger.debug("Fetched %d row(s) from %s", len(values), sheet_id)
        return Snapshot.from_values(values, taken_at=self._clock())


def _classify_http_error(sheet_id: SheetId, exc: HttpError) -> Exception:
    status = int(getattr(exc.resp, "status", 0) or 0)
    detail = f"HTTP {status}: {getattr(exc, 'reason', None) or exc}"
    if status == 401:
        return UnauthorizedFetchError(sheet_id, detail)
    if status in (403, 404):
        return NotFoundError(sheet_id, detail)
    if status == 429 or status >= 500 or status == 408:
        return RetryableFetchError(sheet_id, detail)
    # 400 (bad range etc.) will not fix itself; report as not found so it is skipped
    return NotFoundError(sheet_id, detail)
