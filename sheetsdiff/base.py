"""
BaseScript — abstract base class for sheetsdiff command-line scripts.

Provides:
  - Rotating file logger + stdout handler on the "sheetsdiff" logger, so library
    modules (which log under sheetsdiff.*) end up in the same files
  - Abstract run() method that must return a JSON-serialisable dict
  - exit_code() hook mapping that dict to the process exit status
  - main() classmethod: parses --debug flag, runs the script, prints JSON to stdout
  - Automatic elapsed-time logging

Subclass usage:
    class MyScript(BaseScript):
        def run(self) -> dict:
            self.logger.info("doing work...")
            return {"result": "done"}

    if __name__ == "__main__":
        MyScript.main()
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from abc import ABC, abstractmethod
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

LOGS_DIR = Path("~/.sheetsdiff/logs").expanduser()
ROOT_LOGGER = "sheetsdiff"

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s — %(message)s"


class BaseScript(ABC):
    """Abstract base for all sheetsdiff scripts."""

    def __init__(self, log_level: int = logging.INFO, log_dir: Optional[Path] = None) -> None:
        # Derive script name from the concrete class name (lowercased)
        self.script_name: str = type(self).__name__.lower()
        self.log_dir: Path = Path(log_dir).expanduser() if log_dir else LOGS_DIR
        self.logger: logging.Logger = self._setup_logger(log_level)

    # ── Logging ───────────────────────────────────────────────────────────────

    def _setup_logger(self, log_level: int) -> logging.Logger:
        """
        Configure the package logger to write to both:
          - <log_dir>/<script_name>.log  (rotating, max 2 MB × 5 backups)
          - stderr
        and return the script's own child logger.
        """
        package_logger = logging.getLogger(ROOT_LOGGER)
        package_logger.setLevel(log_level)

        # Avoid adding duplicate handlers if the script is instantiated twice
        if not package_logger.handlers:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            fmt = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

            file_handler = RotatingFileHandler(
                self.log_dir / f"{self.script_name}.log",
                maxBytes=2_000_000,   # 2 MB per file
                backupCount=5,
                encoding="utf-8",
            )
            file_handler.setFormatter(fmt)

            # stderr, so stdout carries only the JSON result
            stream_handler = logging.StreamHandler(sys.stderr)
            stream_handler.setFormatter(fmt)

            package_logger.addHandler(file_handler)
            package_logger.addHandler(stream_handler)

        return logging.getLogger(f"{ROOT_LOGGER}.{self.script_name}")

    # ── Abstract interface ────────────────────────────────────────────────────

    @abstractmethod
    def run(self) -> dict[str, Any]:
        """
        Execute the script.

        Must return a dict that is JSON-serialisable (str keys, JSON-safe values).
        datetime objects are serialised via default=str.
        """

    def exit_code(self, result: dict[str, Any]) -> int:
        """Process exit status for a finished run. Override for richer mappings."""
        return 0

    # ── CLI entrypoint ────────────────────────────────────────────────────────

    @classmethod
    def build_parser(cls) -> argparse.ArgumentParser:
        doc = (cls.__doc__ or cls.__name__).strip().splitlines()[0]
        parser = argparse.ArgumentParser(description=doc)
        parser.add_argument(
            "--debug", action="store_true", help="Enable DEBUG-level logging"
        )
        return parser

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> BaseScript:
        return cls(log_level=logging.DEBUG if args.debug else logging.INFO)

    @classmethod
    def main(cls, argv: Optional[list[str]] = None) -> None:
        """
        Standard CLI entrypoint. Wire up as:
            if __name__ == "__main__":
                MyScript.main()

        Parses arguments, instantiates the script, calls run(), prints JSON and
        exits with exit_code(result).
        """
        args = cls.build_parser().parse_args(argv)
        script = cls.from_args(args)

        t0 = time.monotonic()
        try:
            result = script.run()
        except Exception:
            elapsed = time.monotonic() - t0
            script.logger.exception("Script failed after %.2fs", elapsed)
            raise
        elapsed = time.monotonic() - t0
        script.logger.info("Completed in %.2fs", elapsed)
        print(json.dumps(result, indent=2, default=str))
        sys.exit(script.exit_code(result))
