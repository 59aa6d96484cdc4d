"""Import orchestration: raw rows in, new catalog records out."""
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from .gateway import CatalogGateway, ExistingTitleRef
from .history import RunHistoryLog
from .merger import merge_records
from .normalizer import normalize_record
from .records import NormalizedTitle
from .sources import read_raw_records

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

ProgressCallback = Callable[[str, dict[str, Any]], None]


@dataclass(slots=True)
class ImportOptions:
    """Parameters of one import run."""

    limit: int | None = None
    preview: bool = False
    update_existing: bool = False
    batch_size: int = DEFAULT_BATCH_SIZE
    genres: list[str] = field(default_factory=list)
    source_path: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None, **defaults: Any) -> "ImportOptions":
        known = {item.name for item in fields(cls)}
        values = {key: value for key, value in defaults.items() if key in known}
        for key, value in (data or {}).items():
            if key in known and value is not None:
                values[key] = value
        if isinstance(values.get("genres"), str):
            values["genres"] = [values["genres"]]
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ImportStats:
    total_rows: int = 0
    rejected: int = 0
    unique_titles: int = 0
    existing_skipped: int = 0
    existing_titles_skipped: int = 0
    planned_inserts: int = 0
    inserted: int = 0
    conflicts: int = 0
    insert_errors: int = 0
    planned_updates: int = 0
    updated: int = 0
    update_errors: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ImportReport:
    options: ImportOptions
    stats: ImportStats
    started_at: datetime
    elapsed_seconds: float = 0.0
    sample: list[dict[str, Any]] = field(default_factory=list)

    @property
    def throughput(self) -> float:
        """Inserted records per second."""

        if self.elapsed_seconds <= 0:
            return 0.0
        return self.stats.inserted / self.elapsed_seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "options": self.options.to_dict(),
            "stats": self.stats.to_dict(),
            "started_at": self.started_at.isoformat(),
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "throughput": round(self.throughput, 2),
            "sample": self.sample,
        }


def _is_newer(candidate: NormalizedTitle, existing: ExistingTitleRef) -> bool:
    if candidate.source_modified_at is None:
        return False
    return existing.source_modified_at is None or candidate.source_modified_at > existing.source_modified_at


def _sample_entry(record: NormalizedTitle) -> dict[str, Any]:
    return {
        "external_id": record.external_id,
        "title": record.title,
        "release_year": record.release_year,
    }


class ImportOrchestrator:
    """Normalizes, merges and inserts a dataset of titles.

    Re-running the same input is safe: titles already in the catalog are
    skipped, and a duplicate that slips past the existence check is absorbed by
    the store as a conflict.
    """

    SAMPLE_SIZE = 10

    def __init__(
        self,
        gateway: CatalogGateway,
        *,
        history: RunHistoryLog | None = None,
        progress: ProgressCallback | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gateway = gateway
        self._history = history
        self._progress = progress
        self._clock = clock
        self._monotonic = monotonic

    def run_file(self, path: str | Path, options: ImportOptions | None = None) -> ImportReport:
        """Read ``path`` and import its rows."""

        options = options or ImportOptions()
        options.source_path = str(path)
        return self.run(read_raw_records(path), options)

    def run(self, rows: Iterable[Mapping[str, Any]], options: ImportOptions | None = None) -> ImportReport:
        options = options or ImportOptions()
        started_at = self._clock()
        start = self._monotonic()
        stats = ImportStats()
        report = ImportReport(options=options, stats=stats, started_at=started_at)

        current_year = started_at.year
        normalized: list[NormalizedTitle] = []
        for row in rows:
            stats.total_rows += 1
            record = normalize_record(row, current_year=current_year)
            if record is None:
                stats.rejected += 1
                continue
            normalized.append(record)

        candidates = merge_records(normalized)
        stats.unique_titles = len(candidates)
        self._notify(
            "Import parsed",
            {"total_rows": stats.total_rows, "rejected": stats.rejected, "unique_titles": stats.unique_titles},
        )

        existing = self._gateway.lookup(candidate.external_id for candidate in candidates)
        new_titles = [candidate for candidate in candidates if candidate.external_id not in existing]
        # Rows are counted individually; a title repeated in the dump counts once per row.
        stats.existing_skipped = sum(1 for record in normalized if record.external_id in existing)
        stats.existing_titles_skipped = len(candidates) - len(new_titles)
        if options.limit is not None:
            new_titles = new_titles[: max(options.limit, 0)]
        stats.planned_inserts = len(new_titles)

        updates: list[tuple[NormalizedTitle, ExistingTitleRef]] = []
        if options.update_existing:
            updates = [
                (candidate, existing[candidate.external_id])
                for candidate in candidates
                if candidate.external_id in existing and _is_newer(candidate, existing[candidate.external_id])
            ]
        stats.planned_updates = len(updates)
        report.sample = [_sample_entry(record) for record in new_titles[: self.SAMPLE_SIZE]]

        if not options.preview:
            self._insert(new_titles, options, stats)
            self._update(updates, stats)

        return self._finish(report, start)

    def _insert(self, titles: list[NormalizedTitle], options: ImportOptions, stats: ImportStats) -> None:
        batch_size = max(options.batch_size, 1)
        for offset in range(0, len(titles), batch_size):
            batch = titles[offset : offset + batch_size]
            result = self._gateway.insert_batch(batch, genres=options.genres)
            stats.inserted += result.inserted
            stats.conflicts += result.conflicts
            stats.insert_errors += result.errors
            processed = min(offset + batch_size, len(titles))
            self._notify(
                f"Inserted batch {offset // batch_size + 1}",
                {"processed": processed, "total": len(titles), "inserted": stats.inserted},
            )

    def _update(self, updates: list[tuple[NormalizedTitle, ExistingTitleRef]], stats: ImportStats) -> None:
        now = self._clock()
        for candidate, ref in updates:
            secondary_ids = dict(ref.secondary_ids)
            secondary_ids.update(candidate.secondary_ids)
            changed = self._gateway.update_fields(
                ref.id,
                {
                    "secondary_ids": secondary_ids,
                    "source_modified_at": candidate.source_modified_at,
                    "last_modified_at": now,
                },
            )
            if changed:
                stats.updated += 1
            else:
                stats.update_errors += 1

    def _finish(self, report: ImportReport, start: float) -> ImportReport:
        report.elapsed_seconds = max(self._monotonic() - start, 0.0)
        if self._history is not None:
            params = report.options.to_dict()
            params["throughput"] = round(report.throughput, 2)
            self._history.append(
                "import",
                stats=report.stats.to_dict(),
                elapsed_seconds=report.elapsed_seconds,
                params=params,
                timestamp=report.started_at,
            )
        self._notify("Import finished", {"stats": report.stats.to_dict()})
        logger.info(
            "Import finished: %d rows, %d inserted, %d conflicts, %d errors",
            report.stats.total_rows,
            report.stats.inserted,
            report.stats.conflicts,
            report.stats.insert_errors,
        )
        return report

    def _notify(self, message: str, context: dict[str, Any]) -> None:
        if self._progress is not None:
            self._progress(message, context)
