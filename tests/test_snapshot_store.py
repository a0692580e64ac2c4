from datetime import datetime, timezone

import pytest

from sheetsdiff.errors import StoreError
from sheetsdiff.models import Snapshot
from sheetsdiff.snapshot_store import JsonSnapshotStore


def test_missing_snapshot_is_none(tmp_path):
    assert JsonSnapshotStore(tmp_path).load("1abc") is None


def test_save_then_load_preserves_types_and_order(tmp_path):
    store = JsonSnapshotStore(tmp_path / "snaps")
    taken = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    snapshot = Snapshot.from_values([["id", "qty", "ok"], ["a", 1.5, True], ["b", None]], taken_at=taken)

    store.save("1abc", snapshot)
    loaded = store.load("1abc")

    assert loaded == snapshot
    assert loaded.rows[1] == ("a", 1.5, True)
    assert loaded.taken_at == taken


def test_save_replaces_previous(tmp_path):
    store = JsonSnapshotStore(tmp_path)
    store.save("1abc", Snapshot.from_values([["old"]]))
    store.save("1abc", Snapshot.from_values([["new"]]))

    assert store.load("1abc").rows == (("new",),)
    assert len(list(tmp_path.iterdir())) == 1


def test_sheet_ids_with_ranges_get_distinct_files(tmp_path):
    store = JsonSnapshotStore(tmp_path)
    a = store.path_for("1abc/Sheet1!A:B")
    b = store.path_for("1abc/Sheet2!A:B")

    assert a != b
    assert a.parent == tmp_path
    assert "/" not in a.name


def test_corrupt_snapshot_is_an_error_not_a_first_observation(tmp_path):
    store = JsonSnapshotStore(tmp_path)
    store.path_for("1abc").write_text("{broken", encoding="utf-8")

    with pytest.raises(StoreError):
        store.load("1abc")


def test_wrong_shape_is_an_error(tmp_path):
    store = JsonSnapshotStore(tmp_path)
    store.path_for("1abc").write_text('{"rows": "nope"}', encoding="utf-8")

    with pytest.raises(StoreError):
        store.load("1abc")


def test_unreadable_snapshot_is_an_error(tmp_path):
    store = JsonSnapshotStore(tmp_path)
    store.path_for("1abc").mkdir()

    with pytest.raises(StoreError):
        store.load("1abc")


def test_save_failure_is_store_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    store = JsonSnapshotStore(blocker / "sub")

    with pytest.raises(StoreError):
        store.save("1abc", Snapshot.from_values([["a"]]))
