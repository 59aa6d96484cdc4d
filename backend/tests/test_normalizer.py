"""Tests for raw row normalization."""
from __future__ import annotations

from datetime import datetime

import pytest

from backend.pipeline.normalizer import (
    extract_entity_id,
    extract_runtime,
    extract_year,
    normalize_external_id,
    normalize_key,
    normalize_record,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("https://www.imdb.com/title/tt0081505/", "tt0081505"),
        ("http://imdb.com/title/tt12345678/reviews", "tt12345678"),
        ("tt0084787", "tt0084787"),
        ("  tt0084787 ", "tt0084787"),
        ("84787", "tt0084787"),
        ("tt123", None),
        ("nm0000118", None),
        ("https://www.imdb.com/name/", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_external_id(raw: str | None, expected: str | None) -> None:
    assert normalize_external_id(raw) == expected


def test_normalized_ids_are_stable_when_normalized_again() -> None:
    for raw in ("https://www.imdb.com/title/tt0081505/", "84787", "tt0084787"):
        once = normalize_external_id(raw)
        assert once is not None
        assert normalize_external_id(once) == once


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1879", None),
        ("1880", 1880),
        ("2031", 2031),
        ("2032", None),
        ("1982-06-25T00:00:00Z", 1982),
        (1999, 1999),
        ("unknown", None),
        (None, None),
    ],
)
def test_extract_year_bounds(raw: object, expected: int | None) -> None:
    assert extract_year(raw, current_year=2026) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("120", 120),
        ("95 min", 95),
        ("2h 30m", 150),
        ("1h", 60),
        (88, 88),
        ("0", None),
        ("N/A", None),
        ("", None),
    ],
)
def test_extract_runtime(raw: object, expected: int | None) -> None:
    assert extract_runtime(raw) == expected


def test_extract_entity_id_reads_trailing_code() -> None:
    assert extract_entity_id("http://www.wikidata.org/entity/Q1054974") == "Q1054974"
    assert extract_entity_id("not an entity") is None


def test_normalize_key_handles_spreadsheet_headers() -> None:
    assert normalize_key(" IMDb ID ") == "imdb_id"
    assert normalize_key("Release-Date") == "release_date"


def test_normalize_record_from_dataset_export() -> None:
    record = normalize_record(
        {
            "film": "http://www.wikidata.org/entity/Q1054974",
            "filmLabel": "The Thing",
            "imdb": "tt0084787",
            "releaseDate": "1982-06-25T00:00:00Z",
            "modified": "2024-01-02T03:04:05Z",
        },
        current_year=2026,
    )

    assert record is not None
    assert record.external_id == "tt0084787"
    assert record.title == "The Thing"
    assert record.release_year == 1982
    assert record.secondary_ids == {"wikidata": "Q1054974"}
    assert record.source_modified_at == datetime(2024, 1, 2, 3, 4, 5)


def test_normalize_record_from_csv_headers_splits_multi_values() -> None:
    record = normalize_record(
        {
            "IMDb ID": "81505",
            "Title": "The Shining",
            "Year": "1980",
            "Director": "Stanley Kubrick; Stanley Kubrick",
            "Country": "United Kingdom; United States",
            "Runtime": "146 min",
            "TMDB ID": "694",
        },
        current_year=2026,
    )

    assert record is not None
    assert record.external_id == "tt0081505"
    assert record.directors == ["Stanley Kubrick"]
    assert record.countries == ["United Kingdom", "United States"]
    assert record.runtime_minutes == 146
    assert record.secondary_ids == {"tmdb": "694"}


@pytest.mark.parametrize(
    "title",
    ["", "   ", "Q1054974", "12345", "http://www.wikidata.org/entity/Q1054974"],
)
def test_normalize_record_rejects_unusable_titles(title: str) -> None:
    assert normalize_record({"imdb": "tt0084787", "filmLabel": title}) is None


def test_normalize_record_rejects_invalid_identifier() -> None:
    assert normalize_record({"imdb": "not-an-id", "title": "The Thing"}) is None


def test_titles_starting_with_q_are_accepted() -> None:
    record = normalize_record({"imdb": "tt0061655", "title": "Quatermass and the Pit"})
    assert record is not None
    assert record.title == "Quatermass and the Pit"


def test_out_of_range_year_is_dropped_but_record_kept() -> None:
    record = normalize_record(
        {"imdb": "tt0084787", "title": "The Thing", "year": "1850"}, current_year=2026
    )
    assert record is not None
    assert record.release_year is None
