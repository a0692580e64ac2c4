"""
WebhookNotifier — posts changed rows to a chat webhook (Discord-compatible).

One message per changed or added row, with the row's values joined by ", ".
If the first cell of the row matches a key of the mention table, the message
is prefixed with "<@USER_ID> " so the owner of that row gets pinged.

Usage:
    notifier = WebhookNotifier(url, mentions=load_mentions("mentions.txt"))
    orchestrator = RunOrchestrator(..., on_result=notifier.notify)
"""
from __future__ import annotations

import logging
from typing import Optional

import requests

from .errors import NotificationError
from .models import CHANGED, Row, RowChanged, RowRemoved, RunSummary, SheetOutcome
from .render import format_cell, format_row

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 2000     # Discord message limit


class WebhookNotifier:
    """Sends change notifications to a webhook URL."""

    def __init__(
        self,
        url: str,
        mentions: Optional[dict[str, str]] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.url = url
        self.mentions = {k.upper(): v for k, v in (mentions or {}).items()}
        self._session = session or requests.Session()
        self._timeout = timeout

    # ── Transport ─────────────────────────────────────────────────────────────

    def send(self, content: str) -> None:
        """POST one message. Raises NotificationError on any failure."""
        if len(content) > MAX_MESSAGE_CHARS:
            content = content[: MAX_MESSAGE_CHARS - 3] + "..."
        try:
            resp = self._session.post(self.url, json={"content": content}, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise NotificationError(f"Webhook post failed: {exc}") from exc
        logger.debug("Webhook message sent (%d chars)", len(content))

    # ── Message building ──────────────────────────────────────────────────────

    def mention_for(self, row: Row) -> str:
        if not row or not self.mentions:
            return ""
        key = format_cell(row[0]).strip().upper()
        user_id = self.mentions.get(key)
        return f"<@{user_id}> " if user_id else ""

    def messages_for(self, outcome: SheetOutcome) -> list[str]:
        messages: list[str] = []
        for record in outcome.changes:
            if isinstance(record, RowRemoved):
                messages.append(f"removed row {record.index + 1}: {format_row(record.row)}")
                continue
            row = record.new_row if isinstance(record, RowChanged) else record.row
            messages.append(self.mention_for(row) + format_row(row))
        return messages

    # ── Consumers ─────────────────────────────────────────────────────────────

    def notify(self, outcome: SheetOutcome) -> None:
        """Result consumer for RunOrchestrator: posts every change of a changed sheet."""
        if outcome.status != CHANGED:
            return
        messages = self.messages_for(outcome)
        logger.info("Posting %d change message(s) for %s", len(messages), outcome.sheet_id)
        for content in messages:
            self.send(content)

    def report_failures(self, summary: RunSummary) -> None:
        """Post a short alert listing the sheets that failed in this run."""
        if not summary.failed:
            return
        ids = ", ".join(o.sheet_id for o in summary.failed)
        self.send(f"{len(summary.failed)} sheet(s) could not be checked: {ids}. Check the logs.")
