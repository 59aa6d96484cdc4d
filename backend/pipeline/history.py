"""Append-only run history kept as JSON lines."""
from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any

logger = logging.getLogger(__name__)


class RunHistoryLog:
    """Audit trail of import and enrichment runs.

    Each run adds exactly one line; existing lines are never rewritten, so the
    file can be tailed or shipped elsewhere to track credit consumption over time.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def append(
        self,
        kind: str,
        *,
        stats: dict[str, Any],
        elapsed_seconds: float,
        params: dict[str, Any],
        timestamp: datetime | None = None,
    ) -> dict[str, Any]:
        """Write one entry for a finished run and return it."""

        entry = {
            "timestamp": (timestamp or datetime.utcnow()).isoformat(),
            "kind": kind,
            "stats": stats,
            "elapsed_seconds": round(elapsed_seconds, 3),
            "params": params,
        }
        line = json.dumps(entry, ensure_ascii=False, default=str)
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        logger.debug("Recorded %s run in %s", kind, self._path)
        return entry

    def read(self, *, limit: int | None = None, kind: str | None = None) -> list[dict[str, Any]]:
        """Return stored entries oldest first, optionally only the last ``limit``."""

        if not self._path.exists():
            return []

        entries: list[dict[str, Any]] = []
        with self._path.open("r", encoding="utf-8") as handle:
            for number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed history line %d in %s", number, self._path)
                    continue
                if kind and entry.get("kind") != kind:
                    continue
                entries.append(entry)

        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries
