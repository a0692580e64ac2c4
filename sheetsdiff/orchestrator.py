"""
RunOrchestrator — one pass over the watched sheets.

Per sheet:  ensure token -> fetch -> load previous -> diff -> hand result to
the consumer -> save current as the new previous.

The current snapshot is saved only after the consumer has accepted the result,
so a crash or a failed notification leaves the old snapshot in place and the
same changes are reported again on the next run.

Failure scope:
  - AuthError (token refresh / persistence) stops the run; sheets already
    processed keep their outcomes and are reported in the partial summary
  - FetchError / StoreError / NotificationError only affect their own sheet
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional, Protocol

from .credential_store import CredentialStore
from .diff_engine import diff
from .errors import (
    AuthError,
    FetchError,
    NotFoundError,
    RetryableFetchError,
    SheetsDiffError,
    StoreError,
    UnauthorizedFetchError,
)
from .ids import dedupe
from .models import (
    CHANGED,
    FAILED,
    FIRST_SEEN,
    SKIPPED,
    UNCHANGED,
    FirstObservation,
    RunSummary,
    SheetId,
    SheetOutcome,
    Snapshot,
)
from .snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

ResultConsumer = Callable[[SheetOutcome], None]


def _not_checked(sheet_id: SheetId, exc: Optional[AuthError]) -> SheetOutcome:
    return SheetOutcome(sheet_id=sheet_id, status=FAILED, reason=f"not checked: {exc}")


class SheetFetcher(Protocol):
    def fetch(self, sheet_id: SheetId, access_token: str) -> Snapshot: ...


class RunOrchestrator:
    """
    Wires the credential store, fetcher, snapshot store and diff engine together.

    Usage:
        orchestrator = RunOrchestrator(credentials, SheetsFetcher(), JsonSnapshotStore(dir),
                                       on_result=notifier.notify, max_workers=4)
        summary = orchestrator.run(load_sheet_ids("ids.txt"))
    """

    def __init__(
        self,
        credentials: CredentialStore,
        fetcher: SheetFetcher,
        store: SnapshotStore,
        *,
        on_result: Optional[ResultConsumer] = None,
        max_workers: int = 1,
        fetch_attempts: int = 3,
        backoff_base: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._credentials = credentials
        self._fetcher = fetcher
        self._store = store
        self._on_result = on_result
        self._max_workers = max(1, max_workers)
        self._fetch_attempts = max(1, fetch_attempts)
        self._backoff_base = backoff_base
        self._sleep = sleep

    # ── Run ───────────────────────────────────────────────────────────────────

    def run(self, sheet_ids: Iterable[SheetId]) -> RunSummary:
        """
        Process every unique sheet id once and return the outcomes in input order.

        Raises AuthError if no valid credential can be obtained before the
        first sheet is fetched. An AuthError later in the run stops it: the
        sheets already processed keep their outcomes, every other sheet is
        marked failed and the summary carries the error in `auth_error`.
        """
        ids = dedupe(sheet_ids)
        logger.info("Starting run over %d sheet(s)", len(ids))

        # Fail fast before touching any sheet
        self._credentials.ensure_valid()

        if self._max_workers == 1 or len(ids) <= 1:
            outcomes, auth_error = self._run_sequential(ids)
        else:
            outcomes, auth_error = self._run_parallel(ids)

        summary = RunSummary(outcomes=outcomes)
        if auth_error is not None:
            summary.auth_error = str(auth_error)
            logger.critical("Run stopped, credentials rejected: %s", auth_error)
        counts = summary.counts()
        logger.info(
            "Run finished — %d changed, %d unchanged, %d first seen, %d skipped, %d failed",
            counts[CHANGED], counts[UNCHANGED], counts[FIRST_SEEN], counts[SKIPPED], counts[FAILED],
        )
        return summary

    def _run_sequential(self, ids: list[SheetId]) -> tuple[list[SheetOutcome], Optional[AuthError]]:
        outcomes: list[SheetOutcome] = []
        auth_error: Optional[AuthError] = None
        for sheet_id in ids:
            if auth_error is not None:
                outcomes.append(_not_checked(sheet_id, auth_error))
                continue
            try:
                outcomes.append(self.process(sheet_id))
            except AuthError as exc:
                auth_error = exc
                outcomes.append(_not_checked(sheet_id, exc))
        return outcomes, auth_error

    def _run_parallel(self, ids: list[SheetId]) -> tuple[list[SheetOutcome], Optional[AuthError]]:
        workers = min(self._max_workers, len(ids))
        outcomes: list[SheetOutcome] = []
        auth_error: Optional[AuthError] = None
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sheetsdiff") as pool:
            futures = [pool.submit(self.process, sheet_id) for sheet_id in ids]
            for sheet_id, future in zip(ids, futures):
                if future.cancelled():
                    outcomes.append(_not_checked(sheet_id, auth_error))
                    continue
                try:
                    outcomes.append(future.result())
                except AuthError as exc:
                    if auth_error is None:
                        auth_error = exc
                        for f in futures:
                            f.cancel()
                    outcomes.append(_not_checked(sheet_id, exc))
        return outcomes, auth_error

    # ── One sheet ─────────────────────────────────────────────────────────────

    def process(self, sheet_id: SheetId) -> SheetOutcome:
        """Run the full fetch/diff/consume/save cycle for one sheet."""
        try:
            current = self._fetch(sheet_id)
        except NotFoundError as exc:
            logger.warning("Skipping %s: %s", sheet_id, exc)
            return SheetOutcome(sheet_id=sheet_id, status=SKIPPED, reason=str(exc))
        except FetchError as exc:
            logger.error("Could not fetch %s: %s", sheet_id, exc)
            return SheetOutcome(sheet_id=sheet_id, status=FAILED, reason=str(exc))

        try:
            previous = self._store.load(sheet_id)
        except StoreError as exc:
            logger.error("Could not load previous snapshot of %s: %s", sheet_id, exc)
            return SheetOutcome(sheet_id=sheet_id, status=FAILED, snapshot=current, reason=str(exc))

        result = diff(previous, current)
        if isinstance(result, FirstObservation):
            outcome = SheetOutcome(sheet_id=sheet_id, status=FIRST_SEEN, snapshot=current)
            logger.info("%s: first observation (%d rows)", sheet_id, len(current))
        elif result:
            outcome = SheetOutcome(sheet_id=sheet_id, status=CHANGED, changes=result, snapshot=current)
            logger.info("%s: %d change(s)", sheet_id, len(result))
        else:
            outcome = SheetOutcome(sheet_id=sheet_id, status=UNCHANGED, snapshot=current)
            logger.debug("%s: unchanged", sheet_id)

        if self._on_result is not None:
            try:
                self._on_result(outcome)
            except AuthError:
                raise
            except SheetsDiffError as exc:
                logger.error("Result for %s not delivered, keeping old snapshot: %s", sheet_id, exc)
                outcome.status = FAILED
                outcome.reason = f"result not delivered: {exc}"
                return outcome

        try:
            self._store.save(sheet_id, current)
        except StoreError as exc:
            logger.error("Could not save snapshot of %s: %s", sheet_id, exc)
            outcome.status = FAILED
            outcome.reason = f"snapshot not saved: {exc}"
        return outcome

    def _fetch(self, sheet_id: SheetId) -> Snapshot:
        """
        Fetch with retries.

        RetryableFetchError is retried with exponential backoff up to
        fetch_attempts. UnauthorizedFetchError forces one credential refresh
        and one more try; a second rejection is re-raised.
        """
        attempt = 0
        forced_refresh = False
        while True:
            token = self._credentials.ensure_valid().access_token
            try:
                return self._fetcher.fetch(sheet_id, token)
            except UnauthorizedFetchError:
                if forced_refresh:
                    raise
                forced_refresh = True
                self._credentials.force_refresh(token)
            except RetryableFetchError as exc:
                attempt += 1
                if attempt >= self._fetch_attempts:
                    raise
                delay = self._backoff_base * (2 ** (attempt - 1))
                logger.warning(
                    "Fetch of %s failed (%s); attempt %d/%d, retrying in %.1fs",
                    sheet_id, exc, attempt, self._fetch_attempts, delay,
                )
                self._sleep(delay)
