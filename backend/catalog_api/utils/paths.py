"""Filesystem helpers for catalog service paths."""
from __future__ import annotations

from pathlib import Path

from platformdirs import user_data_dir


APP_NAME = "Cryptarr"
APP_AUTHOR = "Cryptarr"


def default_run_history_path() -> str:
    """Return the platform-appropriate location of the run history log."""

    base_dir = Path(user_data_dir(APP_NAME, APP_AUTHOR))
    return str(base_dir / "run-history.jsonl")

