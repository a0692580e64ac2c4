"""
sheets_diff.py — compare every watched sheet against its last snapshot.

Runs once and exits; schedule it with cron / a systemd timer for periodic checks.

Usage:
    python3 scripts/sheets_diff.py
    python3 scripts/sheets_diff.py --ids ~/watch/ids.txt --workers 8
    python3 scripts/sheets_diff.py --range "Responses!A:F" --no-webhook --debug

Output: JSON run summary on stdout
    {
        "generated_at": "<ISO 8601 UTC>",
        "ok": bool,
        "counts": { total, changed, unchanged, first_observation, skipped, failed },
        "changed": [ sheet_id ],
        "skipped": { sheet_id: reason },
        "failed":  { sheet_id: reason },
        "sheets":  [ { sheet_id, status, row_count, summary?, changes?, reason? } ]
    }

    A credential failure part-way through adds "auth_error", "fatal": "auth" and
    "action"; the sheets processed before it keep their results.

Exit status: 0 all sheets processed, 1 some sheet failed,
             2 credential or configuration problem.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sheetsdiff.base import BaseScript
from sheetsdiff.config import Settings, load_settings
from sheetsdiff.credential_store import CredentialStore
from sheetsdiff.errors import AuthError, ConfigError, NotificationError
from sheetsdiff.google_auth import STORE_REFRESH_ATTEMPTS, CredentialFile, GoogleTokenEndpoint
from sheetsdiff.ids import load_mentions, load_sheet_ids
from sheetsdiff.notifier import WebhookNotifier
from sheetsdiff.orchestrator import RunOrchestrator
from sheetsdiff.render import summary_to_dict
from sheetsdiff.sheets_client import SheetsFetcher
from sheetsdiff.snapshot_store import JsonSnapshotStore

EXIT_OK = 0
EXIT_SHEET_FAILURES = 1
EXIT_FATAL = 2
REAUTH_ACTION = "run scripts/authorize.py to re-authenticate"


class SheetsDiff(BaseScript):
    """Fetch each watched Google Sheet, diff it against its previous snapshot, report changes."""

    def __init__(
        self,
        settings: Settings,
        log_level: int = logging.INFO,
        use_webhook: bool = True,
    ) -> None:
        super().__init__(log_level=log_level, log_dir=settings.log_dir)
        self.settings = settings
        self.use_webhook = use_webhook

    # ── run() ─────────────────────────────────────────────────────────────────

    def run(self) -> dict[str, Any]:
        s = self.settings
        try:
            sheet_ids = load_sheet_ids(s.ids_file)
            mentions = load_mentions(s.mentions_file)
        except ConfigError as exc:
            self.logger.error("%s", exc)
            return {"ok": False, "fatal": "config", "error": str(exc)}

        token_file = CredentialFile(s.token_file)
        notifier = self._build_notifier(mentions)

        try:
            credentials = CredentialStore(
                token_file.load(),
                token_file,
                GoogleTokenEndpoint(),
                min_lifetime=timedelta(seconds=s.min_token_lifetime),
                max_attempts=STORE_REFRESH_ATTEMPTS,
            )
            orchestrator = RunOrchestrator(
                credentials,
                SheetsFetcher(default_range=s.default_range, timeout=s.fetch_timeout),
                JsonSnapshotStore(s.snapshot_dir),
                on_result=notifier.notify if notifier else None,
                max_workers=s.max_workers,
                fetch_attempts=s.fetch_attempts,
            )
            summary = orchestrator.run(sheet_ids)
        except AuthError as exc:
            self.logger.critical("Cannot obtain Google credentials: %s", exc)
            return {"ok": False, "fatal": "auth", "error": str(exc), "action": REAUTH_ACTION}

        if notifier:
            try:
                notifier.report_failures(summary)
            except NotificationError as exc:
                self.logger.warning("Could not post failure report: %s", exc)

        result = summary_to_dict(summary)
        if summary.auth_error is not None:
            # sheets finished before the failure stay in the result
            result.update(fatal="auth", error=summary.auth_error, action=REAUTH_ACTION)
        return result

    def _build_notifier(self, mentions: dict[str, str]) -> Optional[WebhookNotifier]:
        if not (self.use_webhook and self.settings.webhook_url):
            return None
        self.logger.debug("Webhook notifications enabled (%d mention(s))", len(mentions))
        return WebhookNotifier(self.settings.webhook_url, mentions=mentions)

    def exit_code(self, result: dict[str, Any]) -> int:
        if result.get("fatal"):
            return EXIT_FATAL
        return EXIT_OK if result.get("ok") else EXIT_SHEET_FAILURES

    # ── CLI entrypoint ────────────────────────────────────────────────────────

    @classmethod
    def build_parser(cls) -> argparse.ArgumentParser:
        parser = super().build_parser()
        parser.add_argument("--env-file", metavar="PATH",
                            help="Load settings from this .env file (default: ./.env)")
        parser.add_argument("--ids", metavar="PATH",
                            help="Sheet id list (default: $SHEETSDIFF_IDS_FILE or ids.txt)")
        parser.add_argument("--snapshot-dir", metavar="DIR",
                            help="Snapshot directory (default: $SHEETSDIFF_SNAPSHOT_DIR)")
        parser.add_argument("--range", dest="default_range", metavar="A1",
                            help="Range for ids without one (default: $SHEETSDIFF_RANGE or A:ZZ)")
        parser.add_argument("--workers", type=int, metavar="N",
                            help="Concurrent sheet fetches (default: $SHEETSDIFF_MAX_WORKERS or 4)")
        parser.add_argument("--no-webhook", dest="webhook", action="store_false", default=True,
                            help="Do not post changes to WEBHOOK_URL")
        return parser

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> SheetsDiff:
        settings = load_settings(args.env_file)
        if args.ids:
            settings.ids_file = Path(args.ids).expanduser()
        if args.snapshot_dir:
            settings.snapshot_dir = Path(args.snapshot_dir).expanduser()
        if args.default_range:
            settings.default_range = args.default_range
        if args.workers:
            settings.max_workers = max(1, args.workers)
        return cls(
            settings,
            log_level=logging.DEBUG if args.debug else logging.INFO,
            use_webhook=args.webhook,
        )


if __name__ == "__main__":
    SheetsDiff.main()
