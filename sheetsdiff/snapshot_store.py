"""
Snapshot persistence: the last observed contents of each sheet.

Only one snapshot per sheet is kept — save() replaces the previous one.

JsonSnapshotStore layout:
    <root>/<percent-encoded sheet id>.json
    {"sheet_id": "...", "taken_at": "<ISO 8601>" | null, "rows": [[...], ...]}
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import quote

from .errors import StoreError
from .fileio import atomic_write_text
from .models import SheetId, Snapshot

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    def load(self, sheet_id: SheetId) -> Optional[Snapshot]: ...

    def save(self, sheet_id: SheetId, snapshot: Snapshot) -> None: ...


class JsonSnapshotStore:
    """
    One JSON file per sheet under a root directory.

    load() returns None only when the file does not exist. A file that exists
    but cannot be read or parsed raises StoreError — treating it as "no
    snapshot" would report a false first observation.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser()

    def path_for(self, sheet_id: SheetId) -> Path:
        return self.root / f"{quote(sheet_id, safe='')}.json"

    def load(self, sheet_id: SheetId) -> Optional[Snapshot]:
        path = self.path_for(sheet_id)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No stored snapshot for %s", sheet_id)
            return None
        except OSError as exc:
            raise StoreError(f"Cannot read snapshot {path}: {exc}") from exc

        try:
            data = json.loads(text)
            rows = data["rows"]
            if not isinstance(rows, list) or not all(isinstance(r, list) for r in rows):
                raise ValueError("'rows' must be a list of lists")
            taken_at = data.get("taken_at")
            return Snapshot.from_values(
                rows,
                taken_at=datetime.fromisoformat(taken_at) if taken_at else None,
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise StoreError(f"Corrupt snapshot {path}: {exc}") from exc

    def save(self, sheet_id: SheetId, snapshot: Snapshot) -> None:
        path = self.path_for(sheet_id)
        payload = {
            "sheet_id": sheet_id,
            "taken_at": snapshot.taken_at.isoformat() if snapshot.taken_at else None,
            "rows": snapshot.to_values(),
        }
        try:
            atomic_write_text(path, json.dumps(payload, ensure_ascii=False))
        except OSError as exc:
            raise StoreError(f"Cannot write snapshot {path}: {exc}") from exc
        logger.debug("Saved snapshot for %s (%d rows)", sheet_id, len(snapshot))
