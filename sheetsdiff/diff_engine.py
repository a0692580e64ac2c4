"""
Positional snapshot diff.

Compares two snapshots of the same sheet row-by-row and column-by-column.
There is no key matching: row N of the previous snapshot is compared with
row N of the current one, so an inserted row shows up as a run of changed
rows plus one added row at the end.

Cell values are normalised before comparison:
  - None, "" and a cell beyond the end of a short row are all "empty"
  - numbers compare by value: 1 == 1.0 == "1" == "1.0" (text must be an exact
    decimal literal; " 1" stays text)
  - floats compare by their shortest repr, so 0.1 == "0.1"
  - booleans are their own kind: True != 1, True != "TRUE"
  - any other text compares exactly, whitespace included

This module is pure (no I/O, no shared state) and safe to call from any thread.
"""
from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence, Union

from .models import (
    Cell,
    CellDiff,
    ChangeRecord,
    FirstObservation,
    Row,
    RowAdded,
    RowChanged,
    RowRemoved,
    Snapshot,
)

_NUMBER_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")

_EMPTY = ("empty",)

SnapshotLike = Union[Snapshot, Sequence[Sequence[Cell]]]


# ── Normalisation ─────────────────────────────────────────────────────────────

def normalize_cell(value: Any) -> tuple:
    """Return a comparison key for a cell value (see module docstring for the policy)."""
    if value is None:
        return _EMPTY
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, int):
        return ("num", Decimal(value))
    if isinstance(value, float):
        if not math.isfinite(value):
            return ("float", repr(value))
        return ("num", Decimal(repr(value)))
    if isinstance(value, str):
        if value == "":
            return _EMPTY
        if _NUMBER_RE.fullmatch(value):
            try:
                return ("num", Decimal(value))
            except InvalidOperation:
                pass
        return ("text", value)
    return ("other", repr(value))


def cells_equal(a: Cell, b: Cell) -> bool:
    return normalize_cell(a) == normalize_cell(b)


# ── Diff ──────────────────────────────────────────────────────────────────────

def _rows(snapshot: SnapshotLike) -> tuple[Row, ...]:
    if isinstance(snapshot, Snapshot):
        return snapshot.rows
    return tuple(tuple(row) for row in snapshot)


def diff_row(old: Sequence[Cell], new: Sequence[Cell]) -> tuple[CellDiff, ...]:
    """Every column whose normalised value differs, in column order."""
    diffs: list[CellDiff] = []
    for column in range(max(len(old), len(new))):
        a = old[column] if column < len(old) else None
        b = new[column] if column < len(new) else None
        if not cells_equal(a, b):
            diffs.append(CellDiff(column=column, old=a, new=b))
    return tuple(diffs)


def diff(
    previous: Optional[SnapshotLike],
    current: SnapshotLike,
) -> Union[FirstObservation, list[ChangeRecord]]:
    """
    Compare two snapshots of one sheet.

    Returns FirstObservation(current) when there is no previous snapshot,
    otherwise the list of change records in ascending row order: changed rows
    first, then trailing added rows (current is longer) or trailing removed
    rows (previous is longer). An unchanged sheet yields [].
    """
    if previous is None:
        if not isinstance(current, Snapshot):
            current = Snapshot(rows=_rows(current))
        return FirstObservation(snapshot=current)

    old_rows = _rows(previous)
    new_rows = _rows(current)
    shared = min(len(old_rows), len(new_rows))

    changes: list[ChangeRecord] = []
    for index in range(shared):
        cell_diffs = diff_row(old_rows[index], new_rows[index])
        if cell_diffs:
            changes.append(RowChanged(
                index=index,
                old_row=old_rows[index],
                new_row=new_rows[index],
                cell_diffs=cell_diffs,
            ))

    for index in range(shared, len(new_rows)):
        changes.append(RowAdded(index=index, row=new_rows[index]))

    for index in range(shared, len(old_rows)):
        changes.append(RowRemoved(index=index, row=old_rows[index]))

    return changes


def summarize(changes: Sequence[ChangeRecord]) -> dict[str, int]:
    """Count change records by kind."""
    counts = {RowAdded.kind: 0, RowRemoved.kind: 0, RowChanged.kind: 0}
    for record in changes:
        counts[record.kind] += 1
    return counts
