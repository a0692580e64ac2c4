"""
Runtime settings, read from the environment after loading an optional .env file.

Variables (all optional):
    GOOGLE_CLIENT_SECRET_FILE      OAuth client JSON for scripts/authorize.py
    SHEETSDIFF_TOKEN_FILE          persisted credential (authorized-user JSON)
    SHEETSDIFF_IDS_FILE            sheet ids to watch, one per line
    SHEETSDIFF_SNAPSHOT_DIR        where previous snapshots are kept
    SHEETSDIFF_LOG_DIR             rotating log files
    SHEETSDIFF_RANGE               A1 range used when a sheet id has none
    SHEETSDIFF_MIN_TOKEN_LIFETIME  seconds an access token must still be valid
    SHEETSDIFF_MAX_WORKERS         concurrent sheet fetches
    SHEETSDIFF_FETCH_TIMEOUT       seconds per Sheets API call
    SHEETSDIFF_FETCH_ATTEMPTS      tries per sheet on transient errors
    WEBHOOK_URL                    post changed rows here (unset = no posts)
    SHEETSDIFF_MENTIONS_FILE       "KEY USER_ID" table for webhook mentions
    SHEETSDIFF_ENV_FILE            .env file to load (default: ./.env)
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError


def _path(value: str) -> Path:
    return Path(value).expanduser()


def _number(env: Mapping[str, str], name: str, default: float, cast=float, minimum: float = 0):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return cast(default)
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {raw!r}")
    return value


@dataclass
class Settings:
    client_secret_file: Path
    token_file: Path
    ids_file: Path
    snapshot_dir: Path
    log_dir: Path
    default_range: str = "A:ZZ"
    min_token_lifetime: float = 60.0
    max_workers: int = 4
    fetch_timeout: float = 5.0
    fetch_attempts: int = 3
    webhook_url: Optional[str] = None
    mentions_file: Optional[Path] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> Settings:
        env = os.environ if env is None else env
        mentions = env.get("SHEETSDIFF_MENTIONS_FILE")
        return cls(
            client_secret_file=_path(env.get(
                "GOOGLE_CLIENT_SECRET_FILE", "~/cred/google_oauth_client.json")),
            token_file=_path(env.get("SHEETSDIFF_TOKEN_FILE", "~/cred/google_token.json")),
            ids_file=_path(env.get("SHEETSDIFF_IDS_FILE", "ids.txt")),
            snapshot_dir=_path(env.get("SHEETSDIFF_SNAPSHOT_DIR", "~/.sheetsdiff/snapshots")),
            log_dir=_path(env.get("SHEETSDIFF_LOG_DIR", "~/.sheetsdiff/logs")),
            default_range=env.get("SHEETSDIFF_RANGE") or "A:ZZ",
            min_token_lifetime=_number(env, "SHEETSDIFF_MIN_TOKEN_LIFETIME", 60),
            max_workers=_number(env, "SHEETSDIFF_MAX_WORKERS", 4, cast=int, minimum=1),
            fetch_timeout=_number(env, "SHEETSDIFF_FETCH_TIMEOUT", 5),
            fetch_attempts=_number(env, "SHEETSDIFF_FETCH_ATTEMPTS", 3, cast=int, minimum=1),
            webhook_url=env.get("WEBHOOK_URL") or None,
            mentions_file=_path(mentions) if mentions else None,
        )


def load_settings(env_file: Optional[Path | str] = None) -> Settings:
    """Load .env (without overriding variables already set) and build Settings."""
    env_file = env_file or os.environ.get("SHEETSDIFF_ENV_FILE", ".env")
    load_dotenv(Path(env_file).expanduser())
    return Settings.from_env()
