"""Readers for raw import files."""
from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def read_raw_records(path: str | Path) -> list[dict[str, Any]]:
    """Load raw rows from a JSON array or a CSV file with a header row."""

    source = Path(path).expanduser()
    if not source.is_file():
        raise ConfigurationError(f"Import file not found: {source}")

    try:
        if source.suffix.lower() == ".csv":
            with source.open("r", encoding="utf-8-sig", newline="") as handle:
                rows: list[Any] = list(csv.DictReader(handle))
        else:
            with source.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            if isinstance(data, dict):
                data = data.get("results") or data.get("items") or []
            if not isinstance(data, list):
                raise ConfigurationError(f"Expected a JSON array of objects in {source}")
            rows = data
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, csv.Error) as exc:
        raise ConfigurationError(f"Unable to read import file {source}: {exc}") from exc

    records = [row for row in rows if isinstance(row, dict)]
    logger.info("Loaded %d raw rows from %s", len(records), source)
    return records
