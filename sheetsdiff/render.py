"""
Formatters: change records and run results -> JSON-safe dicts and short text.

Used by scripts/sheets_diff.py for its stdout JSON and by the webhook notifier.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Sequence

from .diff_engine import summarize
from .models import (
    Cell,
    ChangeRecord,
    RowAdded,
    RowChanged,
    RowRemoved,
    RunSummary,
    SheetOutcome,
)


def format_cell(value: Cell) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_row(row: Sequence[Cell]) -> str:
    """Row values joined the way a person would read them: "a, b, c"."""
    return ", ".join(format_cell(v) for v in row)


def describe_change(record: ChangeRecord) -> str:
    """One-line human summary. Row numbers are 1-based, as shown in the Sheets UI."""
    if isinstance(record, RowAdded):
        return f"row {record.index + 1} added: {format_row(record.row)}"
    if isinstance(record, RowRemoved):
        return f"row {record.index + 1} removed: {format_row(record.row)}"
    cells = "; ".join(
        f"col {d.column + 1}: {format_cell(d.old)!r} -> {format_cell(d.new)!r}"
        for d in record.cell_diffs
    )
    return f"row {record.index + 1} changed: {cells}"


# ── JSON ──────────────────────────────────────────────────────────────────────

def change_to_dict(record: ChangeRecord) -> dict[str, Any]:
    if isinstance(record, RowChanged):
        return {
            "kind":      record.kind,
            "index":     record.index,
            "old_row":   list(record.old_row),
            "new_row":   list(record.new_row),
            "cells": [
                {"column": d.column, "old": d.old, "new": d.new}
                for d in record.cell_diffs
            ],
        }
    return {
        "kind":  record.kind,
        "index": record.index,
        "row":   list(record.row),
    }


def outcome_to_dict(outcome: SheetOutcome) -> dict[str, Any]:
    out: dict[str, Any] = {
        "sheet_id":  outcome.sheet_id,
        "status":    outcome.status,
        "row_count": outcome.row_count,
    }
    if outcome.changes:
        out["summary"] = summarize(outcome.changes)
        out["changes"] = [change_to_dict(c) for c in outcome.changes]
    if outcome.reason:
        out["reason"] = outcome.reason
    return out


def summary_to_dict(summary: RunSummary) -> dict[str, Any]:
    out: dict[str, Any] = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "ok":           summary.ok,
        "counts":       summary.counts(),
        "changed":      [o.sheet_id for o in summary.changed],
        "skipped":      {o.sheet_id: o.reason for o in summary.skipped},
        "failed":       {o.sheet_id: o.reason for o in summary.failed},
        "sheets":       [outcome_to_dict(o) for o in summary.outcomes],
    }
    if summary.auth_error is not None:
        out["auth_error"] = summary.auth_error
    return out
