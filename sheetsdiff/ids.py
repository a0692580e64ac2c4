"""
Loaders for the two plain-text inputs of a run.

ids file — which sheets to watch, one per line:
    # comments and blank lines are ignored
    1AbCdEfGhIjK  # finance              text after whitespace + "#" is a comment
    1AbCdEfGhIjK                         whole first tab (default range)
    1AbCdEfGhIjK/Responses!A:F           explicit range
    https://docs.google.com/spreadsheets/d/1AbCdEfGhIjK/edit#gid=0

mentions file — who to ping when a row changes, "KEY USER_ID" per line.
KEY is matched (case-insensitively) against the first cell of the changed row.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Optional

from .errors import ConfigError
from .models import SheetId

logger = logging.getLogger(__name__)

SHEET_URL_RE = re.compile(r"https?://docs\.google\.com/spreadsheets/d/([a-zA-Z0-9_-]+)")
_INLINE_COMMENT_RE = re.compile(r"\s+#.*$")


def normalize_sheet_id(line: str) -> Optional[SheetId]:
    """Return the sheet id on a line, or None for blank/comment lines."""
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    line = _INLINE_COMMENT_RE.sub("", line)
    m = SHEET_URL_RE.search(line)
    if m:
        return m.group(1)
    return line


def dedupe(sheet_ids: Iterable[SheetId]) -> list[SheetId]:
    """Drop repeated ids, keeping the first occurrence's position."""
    return list(dict.fromkeys(sheet_ids))


def parse_sheet_ids(lines: Iterable[str]) -> list[SheetId]:
    ids = (normalize_sheet_id(line) for line in lines)
    return dedupe(i for i in ids if i)


def load_sheet_ids(path: Path | str) -> list[SheetId]:
    path = Path(path).expanduser()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read ids file {path}: {exc}") from exc
    ids = parse_sheet_ids(text.splitlines())
    logger.info("Loaded %d sheet id(s) from %s", len(ids), path)
    return ids


def load_mentions(path: Optional[Path | str]) -> dict[str, str]:
    """
    Read the mention table. A missing file just means no mentions.
    Lines with fewer than two fields are ignored.
    """
    if not path:
        return {}
    path = Path(path).expanduser()
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning("Mentions file %s not found; continuing without mentions", path)
        return {}
    except OSError as exc:
        raise ConfigError(f"Cannot read mentions file {path}: {exc}") from exc

    mentions: dict[str, str] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2 or parts[0].startswith("#"):
            continue
        mentions[parts[0].upper()] = parts[1]
    logger.debug("Loaded %d mention(s)", len(mentions))
    return mentions
