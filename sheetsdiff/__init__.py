"""
sheetsdiff — watch Google Sheets and report what changed since the last run.

Package structure:
    sheetsdiff.base              — BaseScript abstract class (logging, timing, CLI)
    sheetsdiff.config            — Settings from environment / .env
    sheetsdiff.errors            — exception hierarchy
    sheetsdiff.models            — typed dataclasses (Credential, Snapshot, change records)
    sheetsdiff.google_auth       — token file, Google token endpoint, consent flow
    sheetsdiff.credential_store  — CredentialStore (single-flight token refresh)
    sheetsdiff.diff_engine       — positional snapshot diff
    sheetsdiff.sheets_client     — SheetsFetcher (Sheets API v4)
    sheetsdiff.snapshot_store    — JsonSnapshotStore
    sheetsdiff.ids               — sheet id list and mention table loaders
    sheetsdiff.orchestrator      — RunOrchestrator
    sheetsdiff.render            — JSON / text formatters
    sheetsdiff.notifier          — WebhookNotifier
"""

__version__ = "0.1.0"
