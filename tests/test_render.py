import json

from sheetsdiff.diff_engine import diff
from sheetsdiff.models import (
    CHANGED,
    FAILED,
    FIRST_SEEN,
    SKIPPED,
    RunSummary,
    SheetOutcome,
    Snapshot,
)
from sheetsdiff.render import describe_change, format_cell, outcome_to_dict, summary_to_dict


def test_format_cell():
    assert format_cell(None) == ""
    assert format_cell(True) == "TRUE"
    assert format_cell(3.0) == "3"
    assert format_cell(2.5) == "2.5"
    assert format_cell("x") == "x"


def test_describe_change_uses_one_based_rows():
    added, = diff([["a"]], [["a"], ["b", 2]])
    changed, = diff([["a", "1"]], [["a", "2"]])

    assert describe_change(added) == "row 2 added: b, 2"
    assert describe_change(changed) == "row 1 changed: col 2: '1' -> '2'"


def test_outcome_to_dict_for_changed_sheet():
    changes = diff([["a", "1"], ["b"]], [["a", "2"]])
    outcome = SheetOutcome(sheet_id="s1", status=CHANGED, changes=changes,
                           snapshot=Snapshot.from_values([["a", "2"]]))

    out = outcome_to_dict(outcome)

    assert out["row_count"] == 1
    assert out["summary"] == {"row_added": 0, "row_removed": 1, "row_changed": 1}
    assert out["changes"][0] == {
        "kind": "row_changed",
        "index": 0,
        "old_row": ["a", "1"],
        "new_row": ["a", "2"],
        "cells": [{"column": 1, "old": "1", "new": "2"}],
    }
    assert out["changes"][1] == {"kind": "row_removed", "index": 1, "row": ["b"]}


def test_summary_to_dict_is_json_serialisable():
    summary = RunSummary(outcomes=[
        SheetOutcome(sheet_id="s1", status=FIRST_SEEN, snapshot=Snapshot.from_values([["a"]])),
        SheetOutcome(sheet_id="s2", status=SKIPPED, reason="HTTP 404"),
        SheetOutcome(sheet_id="s3", status=FAILED, reason="timeout"),
    ])

    out = summary_to_dict(summary)
    json.dumps(out)

    assert out["ok"] is False
    assert out["counts"]["total"] == 3
    assert out["skipped"] == {"s2": "HTTP 404"}
    assert out["failed"] == {"s3": "timeout"}
    assert [s["status"] for s in out["sheets"]] == ["first_observation", "skipped", "failed"]


def test_summary_to_dict_carries_auth_error():
    summary = RunSummary(
        outcomes=[SheetOutcome(sheet_id="s1", status=CHANGED, changes=diff([["a"]], [["b"]]))],
        auth_error="revoked",
    )

    out = summary_to_dict(summary)

    assert out["auth_error"] == "revoked"
    assert out["ok"] is False
    assert out["changed"] == ["s1"]
    assert "auth_error" not in summary_to_dict(RunSummary())
