from datetime import datetime, timezone

import httplib2
import pytest
from googleapiclient.errors import HttpError

from sheetsdiff.errors import NotFoundError, RetryableFetchError, UnauthorizedFetchError
from sheetsdiff.models import Snapshot
from sheetsdiff.sheets_client import SheetsFetcher, split_sheet_id

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


class _Request:
    def __init__(self, result):
        self._result = result

    def execute(self):
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


class _FakeService:
    """Mimics service.spreadsheets().values().get(...).execute()."""

    def __init__(self, result):
        self.result = result
        self.requests = []

    def spreadsheets(self):
        return self

    def values(self):
        return self

    def get(self, **kwargs):
        self.requests.append(kwargs)
        return _Request(self.result)


def _fetcher(result, builds=None):
    service = _FakeService(result)

    def builder(access_token, timeout):
        if builds is not None:
            builds.append((access_token, timeout))
        return service

    return SheetsFetcher(default_range="A:Z", timeout=3, service_builder=builder,
                         clock=lambda: NOW), service


def _http_error(status):
    return HttpError(httplib2.Response({"status": status}),
                     b'{"error": {"message": "nope"}}')


def test_split_sheet_id():
    assert split_sheet_id("1abc") == ("1abc", "A:ZZ")
    assert split_sheet_id("1abc", "Sheet1") == ("1abc", "Sheet1")
    assert split_sheet_id("1abc/Responses!A:F") == ("1abc", "Responses!A:F")
    assert split_sheet_id("1abc/a/b!A1") == ("1abc", "a/b!A1")


def test_fetch_returns_typed_snapshot():
    fetcher, service = _fetcher({"values": [["id", "n"], ["a", 1, True]]})

    snapshot = fetcher.fetch("1abc", "tok")

    assert snapshot == Snapshot.from_values([["id", "n"], ["a", 1, True]])
    assert snapshot.taken_at == NOW
    assert service.requests == [{
        "spreadsheetId": "1abc",
        "range": "A:Z",
        "valueRenderOption": "UNFORMATTED_VALUE",
        "dateTimeRenderOption": "FORMATTED_STRING",
    }]


def test_empty_sheet_has_no_values_key():
    fetcher, _ = _fetcher({"range": "Sheet1!A1:Z1000", "majorDimension": "ROWS"})
    assert fetcher.fetch("1abc", "tok").is_empty


def test_service_is_reused_until_token_changes():
    builds = []
    fetcher, _ = _fetcher({"values": []}, builds)

    fetcher.fetch("1abc", "tok-1")
    fetcher.fetch("2def", "tok-1")
    fetcher.fetch("1abc", "tok-2")

    assert builds == [("tok-1", 3), ("tok-2", 3)]


@pytest.mark.parametrize("status,error", [
    (401, UnauthorizedFetchError),
    (403, NotFoundError),
    (404, NotFoundError),
    (400, NotFoundError),
    (429, RetryableFetchError),
    (500, RetryableFetchError),
    (503, RetryableFetchError),
])
def test_http_errors_are_classified(status, error):
    fetcher, _ = _fetcher(_http_error(status))

    with pytest.raises(error) as exc_info:
        fetcher.fetch("1abc", "tok")
    assert exc_info.value.sheet_id == "1abc"


def test_timeout_is_retryable():
    fetcher, _ = _fetcher(TimeoutError("timed out"))
    with pytest.raises(RetryableFetchError):
        fetcher.fetch("1abc", "tok")


def test_dns_failure_is_retryable():
    fetcher, _ = _fetcher(httplib2.ServerNotFoundError("Unable to find the server"))
    with pytest.raises(RetryableFetchError):
        fetcher.fetch("1abc", "tok")
