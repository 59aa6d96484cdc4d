"""Collapse normalized rows sharing an external id into one candidate each."""
from __future__ import annotations

from typing import Iterable

from .records import NormalizedTitle

MULTI_VALUE_CAP = 3


def _append_unique(target: list[str], values: Iterable[str], cap: int) -> None:
    for value in values:
        if len(target) >= cap:
            return
        if value and value not in target:
            target.append(value)


def _absorb(merged: NormalizedTitle, record: NormalizedTitle) -> None:
    if not merged.title and record.title:
        merged.title = record.title

    if record.release_year is not None and (
        merged.release_year is None or record.release_year < merged.release_year
    ):
        merged.release_year = record.release_year

    if merged.runtime_minutes is None and record.runtime_minutes is not None:
        merged.runtime_minutes = record.runtime_minutes

    if record.source_modified_at is not None and (
        merged.source_modified_at is None or record.source_modified_at > merged.source_modified_at
    ):
        merged.source_modified_at = record.source_modified_at

    _append_unique(merged.directors, record.directors, MULTI_VALUE_CAP)
    _append_unique(merged.countries, record.countries, MULTI_VALUE_CAP)

    for key, value in record.secondary_ids.items():
        if value and not merged.secondary_ids.get(key):
            merged.secondary_ids[key] = value


def merge_records(records: Iterable[NormalizedTitle]) -> list[NormalizedTitle]:
    """Merge records by external id, keeping first-seen order.

    The earliest year and the latest source timestamp win. Other scalar fields
    keep the first non-empty value, and multi-valued fields are appended without
    duplicates up to ``MULTI_VALUE_CAP`` entries.
    """

    merged: dict[str, NormalizedTitle] = {}
    for record in records:
        current = merged.get(record.external_id)
        if current is None:
            current = NormalizedTitle(external_id=record.external_id, title="")
            merged[record.external_id] = current
        _absorb(current, record)
    return list(merged.values())
