"""
Typed data models for credentials, snapshots and change records.

All classes are frozen dataclasses — no external dependencies, safe to import
anywhere. Behaviour lives in the store / engine / orchestrator modules, not here.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Sequence, Union

# A single spreadsheet cell as returned with valueRenderOption=UNFORMATTED_VALUE
Cell = Union[str, int, float, bool, None]
Row = tuple[Cell, ...]

# Opaque sheet identifier: "SPREADSHEET_ID" or "SPREADSHEET_ID/RANGE"
SheetId = str


# ── Credentials ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TokenGrant:
    """The result of one refresh-token exchange."""

    access_token: str
    expiry: Optional[datetime]
    refresh_token: Optional[str] = None     # only set when the server rotates it


@dataclass(frozen=True)
class Credential:
    """
    OAuth2 installed-app credential: long-lived refresh token + short-lived access token.

    access_token_expiry is a timezone-aware UTC datetime. A missing expiry or
    access token is treated as already expired.
    """

    refresh_token: str
    client_id: str
    client_secret: str
    access_token: Optional[str] = None
    access_token_expiry: Optional[datetime] = None
    token_uri: str = "https://oauth2.googleapis.com/token"
    scopes: tuple[str, ...] = ()

    def remaining_lifetime(self, now: datetime) -> timedelta:
        if not self.access_token or self.access_token_expiry is None:
            return timedelta(0)
        return self.access_token_expiry - now

    def is_valid_for(self, now: datetime, min_lifetime: timedelta) -> bool:
        """True if the access token stays valid for at least min_lifetime from now."""
        return bool(self.access_token) and self.remaining_lifetime(now) >= min_lifetime

    def with_grant(self, grant: TokenGrant) -> Credential:
        """Return a copy carrying the new access token. The refresh token is kept unless rotated."""
        return replace(
            self,
            access_token=grant.access_token,
            access_token_expiry=grant.expiry,
            refresh_token=grant.refresh_token or self.refresh_token,
        )


# ── Snapshots ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Snapshot:
    """An immutable positional grid of cell values: one sheet at one point in time."""

    rows: tuple[Row, ...] = ()
    taken_at: Optional[datetime] = field(default=None, compare=False)

    @classmethod
    def from_values(
        cls,
        values: Iterable[Sequence[Cell]],
        taken_at: Optional[datetime] = None,
    ) -> Snapshot:
        """Build a snapshot from a list-of-lists (e.g. a Sheets API 'values' payload)."""
        return cls(rows=tuple(tuple(row) for row in values), taken_at=taken_at)

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def to_values(self) -> list[list[Cell]]:
        return [list(row) for row in self.rows]


# ── Change records ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CellDiff:
    """One differing cell inside a changed row. Absent cells are reported as None."""

    column: int
    old: Cell
    new: Cell


@dataclass(frozen=True)
class RowAdded:
    index: int
    row: Row

    kind = "row_added"


@dataclass(frozen=True)
class RowRemoved:
    index: int
    row: Row

    kind = "row_removed"


@dataclass(frozen=True)
class RowChanged:
    index: int
    old_row: Row
    new_row: Row
    cell_diffs: tuple[CellDiff, ...]

    kind = "row_changed"


ChangeRecord = Union[RowAdded, RowRemoved, RowChanged]


@dataclass(frozen=True)
class FirstObservation:
    """Diff result for a sheet seen for the first time. Not a change event."""

    snapshot: Snapshot

    kind = "first_observation"


# ── Run results ───────────────────────────────────────────────────────────────

# Outcome statuses
CHANGED = "changed"
UNCHANGED = "unchanged"
FIRST_SEEN = "first_observation"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class SheetOutcome:
    """What happened to one sheet during a run."""

    sheet_id: SheetId
    status: str             # one of CHANGED | UNCHANGED | FIRST_SEEN | SKIPPED | FAILED
    changes: list[ChangeRecord] = field(default_factory=list)
    snapshot: Optional[Snapshot] = None
    reason: str = ""

    @property
    def row_count(self) -> Optional[int]:
        return len(self.snapshot) if self.snapshot is not None else None


@dataclass
class RunSummary:
    """All sheet outcomes of one run, in identifier-list order."""

    outcomes: list[SheetOutcome] = field(default_factory=list)
    auth_error: Optional[str] = None     # set when credentials failed mid-run

    def _with_status(self, status: str) -> list[SheetOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def changed(self) -> list[SheetOutcome]:
        return self._with_status(CHANGED)

    @property
    def unchanged(self) -> list[SheetOutcome]:
        return self._with_status(UNCHANGED)

    @property
    def first_observed(self) -> list[SheetOutcome]:
        return self._with_status(FIRST_SEEN)

    @property
    def skipped(self) -> list[SheetOutcome]:
        return self._with_status(SKIPPED)

    @property
    def failed(self) -> list[SheetOutcome]:
        return self._with_status(FAILED)

    @property
    def ok(self) -> bool:
        """True when every sheet was processed (skips count as processed)."""
        return not self.failed and self.auth_error is None

    def counts(self) -> dict[str, Any]:
        return {
            "total": len(self.outcomes),
            CHANGED: len(self.changed),
            UNCHANGED: len(self.unchanged),
            FIRST_SEEN: len(self.first_observed),
            SKIPPED: len(self.skipped),
            FAILED: len(self.failed),
        }
