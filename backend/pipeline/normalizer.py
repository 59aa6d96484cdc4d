"""Turn raw import rows into validated title records."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Mapping

from .records import NormalizedTitle

MIN_YEAR = 1880
FUTURE_YEAR_WINDOW = 5

EXTERNAL_ID_PATTERN = re.compile(r"^tt\d{7,}$")
_EMBEDDED_ID = re.compile(r"tt\d+")
_YEAR_PREFIX = re.compile(r"^\s*(\d{4})(?:$|[-/T\s.])")
_ENTITY_ID = re.compile(r"Q\d+$")
_ENTITY_TITLE = re.compile(r"^Q?\d+$")
_RUNTIME_HOURS = re.compile(r"(\d+)\s*h")
_RUNTIME_MINUTES = re.compile(r"(\d+)\s*m")
_LEADING_DIGITS = re.compile(r"^\s*(\d+)")

# Canonical field name -> accepted column names (after key normalization).
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "external_id": ("imdb_id", "imdbid", "imdb"),
    "title": ("title", "filmlabel", "film_label", "label"),
    "year": ("year", "releasedate", "release_date", "publication_date", "publicationdate"),
    "director": ("director", "directorlabel", "director_label", "directors"),
    "country": ("country", "countrylabel", "country_label", "countries"),
    "runtime": ("runtime", "runtime_minutes", "durationminutes", "duration_minutes", "duration"),
    "tmdb_id": ("tmdb_id", "tmdbid", "tmdb"),
    "entity": ("wikidata_id", "wikidata", "film", "item"),
    "modified": ("modified", "last_modified", "date_modified"),
}

MULTI_VALUE_SEPARATOR = ";"


def normalize_external_id(value: Any) -> str | None:
    """Return the canonical ``tt`` identifier or ``None`` when the value is unusable."""

    if value is None:
        return None
    cleaned = str(value).strip()
    if not cleaned:
        return None

    if "imdb.com" in cleaned:
        match = _EMBEDDED_ID.search(cleaned)
        if match is None:
            return None
        cleaned = match.group(0)

    if not cleaned.startswith("tt"):
        if not cleaned.isdigit():
            return None
        cleaned = f"tt{cleaned.zfill(7)}"

    return cleaned if EXTERNAL_ID_PATTERN.match(cleaned) else None


def extract_year(value: Any, *, current_year: int | None = None) -> int | None:
    """Read a release year from a bare year or an ISO-like date string."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        year = value
    else:
        match = _YEAR_PREFIX.match(str(value))
        if match is None:
            return None
        year = int(match.group(1))

    ceiling = (current_year or datetime.utcnow().year) + FUTURE_YEAR_WINDOW
    if MIN_YEAR <= year <= ceiling:
        return year
    return None


def extract_runtime(value: Any) -> int | None:
    """Parse runtimes such as ``95``, ``"95 min"`` or ``"1h 35m"`` into minutes."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        minutes = int(value)
        return minutes if minutes > 0 else None

    text = str(value).strip().lower()
    if not text:
        return None

    hours = _RUNTIME_HOURS.search(text)
    if hours:
        minutes_match = _RUNTIME_MINUTES.search(text[hours.end():])
        total = int(hours.group(1)) * 60
        if minutes_match:
            total += int(minutes_match.group(1))
        return total or None

    digits = _LEADING_DIGITS.match(text)
    if digits is None:
        return None
    minutes = int(digits.group(1))
    return minutes or None


def extract_entity_id(value: Any) -> str | None:
    """Pull the trailing ``Q`` entity code out of a source-dataset URL."""

    if not value:
        return None
    match = _ENTITY_ID.search(str(value).strip())
    return match.group(0) if match else None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO timestamp into a naive UTC datetime."""

    if isinstance(value, datetime):
        parsed = value
    elif value:
        text = str(value).strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def is_valid_title(title: str) -> bool:
    """Reject empty titles, bare entity codes and links leaking from the source dataset."""

    if not title:
        return False
    if _ENTITY_TITLE.match(title):
        return False
    lowered = title.lower()
    return "wikidata.org" not in lowered and not lowered.startswith(("http://", "https://"))


def normalize_key(key: str) -> str:
    return str(key).strip().lower().replace(" ", "_").replace("-", "_")


def _pick(row: Mapping[str, Any], field_name: str) -> Any:
    for alias in COLUMN_ALIASES[field_name]:
        value = row.get(alias)
        if value not in (None, ""):
            return value
    return None


def _split_values(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        parts = [str(item) for item in value]
    else:
        parts = str(value).split(MULTI_VALUE_SEPARATOR)
    values: list[str] = []
    for part in parts:
        cleaned = part.strip()
        if cleaned and cleaned not in values:
            values.append(cleaned)
    return values


def normalize_record(raw: Mapping[str, Any], *, current_year: int | None = None) -> NormalizedTitle | None:
    """Validate one raw row, returning ``None`` when it must be rejected.

    Only a missing or malformed primary identifier and an unusable title reject a
    row. A year outside the accepted range is dropped but the row survives.
    """

    row = {normalize_key(key): value for key, value in raw.items()}

    external_id = normalize_external_id(_pick(row, "external_id"))
    if external_id is None:
        return None

    title_value = _pick(row, "title")
    title = str(title_value).strip() if title_value is not None else ""
    if not is_valid_title(title):
        return None

    secondary_ids: dict[str, str] = {}
    entity_id = extract_entity_id(_pick(row, "entity"))
    if entity_id:
        secondary_ids["wikidata"] = entity_id
    tmdb_id = _pick(row, "tmdb_id")
    if tmdb_id is not None and str(tmdb_id).strip():
        secondary_ids["tmdb"] = str(tmdb_id).strip()

    return NormalizedTitle(
        external_id=external_id,
        title=title,
        release_year=extract_year(_pick(row, "year"), current_year=current_year),
        runtime_minutes=extract_runtime(_pick(row, "runtime")),
        directors=_split_values(_pick(row, "director")),
        countries=_split_values(_pick(row, "country")),
        secondary_ids=secondary_ids,
        source_modified_at=parse_timestamp(_pick(row, "modified")),
    )
