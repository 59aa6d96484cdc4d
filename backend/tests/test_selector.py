"""Tests for candidate selection."""
from __future__ import annotations

from datetime import datetime

from backend.catalog_api.stores.catalog_store import CatalogStore
from backend.catalog_api.stores.curated_list_store import CuratedListStore
from backend.pipeline.records import CatalogTitle
from backend.pipeline.selector import (
    EnrichmentNeeds,
    EnrichmentSelector,
    needs_availability,
    needs_metadata,
)

NOW = datetime(2026, 6, 1)


def _selector(store: CatalogStore, lists: CuratedListStore | None = None) -> EnrichmentSelector:
    return EnrichmentSelector(store, lists=lists, clock=lambda: NOW)


def test_needs_predicates_follow_content_and_markers() -> None:
    blank = CatalogTitle(id="1", external_id="tt0000001", title="Blank")
    checked = CatalogTitle(
        id="2",
        external_id="tt0000002",
        title="Checked",
        metadata_checked_at=NOW,
        availability_checked_at=NOW,
        availability_sources=[],
    )
    complete = CatalogTitle(id="3", external_id="tt0000003", title="Done", poster_url="https://img")

    assert needs_metadata(blank) and needs_availability(blank)
    assert not needs_metadata(checked)
    assert not needs_availability(checked)
    assert needs_metadata(checked, respect_markers=False)
    assert needs_availability(checked, respect_markers=False)
    assert not needs_metadata(complete)


def test_featured_titles_come_before_recent_ones(store: CatalogStore, seed_title) -> None:
    seed_title("tt1000001", featured=True, release_year=1975)
    seed_title("tt1000002", featured=True, release_year=1999)
    for index in range(10):
        seed_title(f"tt20000{index:02d}", release_year=2021 + (index % 5))

    selected = _selector(store).select(5, EnrichmentNeeds())

    assert len(selected) == 5
    assert [title.featured for title in selected] == [True, True, False, False, False]
    assert all(title.release_year >= 2020 for title in selected[2:])


def test_recent_window_comes_from_the_clock(store: CatalogStore) -> None:
    assert _selector(store).recent_since() == 2020


def test_classics_fill_remaining_slots(store: CatalogStore, seed_title) -> None:
    seed_title("tt0000001", release_year=2024)
    seed_title("tt0000002", release_year=1968)
    seed_title("tt0000003", release_year=None)

    selected = _selector(store).select(10, EnrichmentNeeds())

    assert [title.external_id for title in selected] == ["tt0000001", "tt0000002", "tt0000003"]


def test_titles_without_remaining_needs_are_skipped(store: CatalogStore, seed_title) -> None:
    source = {
        "service_name": "Shudder",
        "service_id": "251",
        "offer_type": "subscription",
        "deep_link": "https://shudder.com/x",
        "region": "US",
        "verified_at": "2026-01-01T00:00:00",
    }
    seed_title("tt0000001", poster_url="https://img", availability_sources=[source])
    seed_title("tt0000002", poster_url="https://img")
    seed_title("tt0000003")

    selected = _selector(store).select(10, EnrichmentNeeds())

    assert {title.external_id for title in selected} == {"tt0000002", "tt0000003"}


def test_metadata_only_ignores_missing_sources(store: CatalogStore, seed_title) -> None:
    seed_title("tt0000001", poster_url="https://img")
    seed_title("tt0000002")

    selected = _selector(store).select(10, EnrichmentNeeds(availability=False))

    assert [title.external_id for title in selected] == ["tt0000002"]


def test_checked_markers_exclude_titles_only_when_respected(store: CatalogStore, seed_title) -> None:
    seed_title(
        "tt0000001",
        metadata_checked_at=datetime(2026, 1, 1),
        availability_checked_at=datetime(2026, 1, 1),
    )

    respected = _selector(store).select(10, EnrichmentNeeds())
    ignored = _selector(store).select(10, EnrichmentNeeds(respect_markers=False))

    assert respected == []
    assert [title.external_id for title in ignored] == ["tt0000001"]


def test_zero_limit_selects_nothing(store: CatalogStore, seed_title) -> None:
    seed_title("tt0000001")

    assert _selector(store).select(0, EnrichmentNeeds()) == []


def test_list_filter_without_published_lists_selects_nothing(
    store: CatalogStore, engine, seed_title, seed_list
) -> None:
    seed_title("tt0000001")
    seed_list("draft", ["tt0000001"], published=False)

    selected = _selector(store, CuratedListStore(engine)).select(10, EnrichmentNeeds(), in_lists=True)

    assert selected == []


def test_list_filter_limits_to_published_entries(store: CatalogStore, engine, seed_title, seed_list) -> None:
    member_id = seed_title("tt0000001")
    seed_title("tt0000002")
    seed_title("tt0000003")
    seed_list("halloween", [member_id, "tt0000003"])
    seed_list("draft", ["tt0000002"], published=False)

    selected = _selector(store, CuratedListStore(engine)).select(10, EnrichmentNeeds(), in_lists=True)

    assert {title.external_id for title in selected} == {"tt0000001", "tt0000003"}


def test_list_filter_matches_entries_written_as_urls_or_digits(
    store: CatalogStore, engine, seed_title, seed_list
) -> None:
    seed_title("tt0084787")
    seed_title("tt0081505")
    seed_title("tt0078748")
    seed_list("halloween", ["https://www.imdb.com/title/tt0084787/", "81505"])

    selected = _selector(store, CuratedListStore(engine)).select(10, EnrichmentNeeds(), in_lists=True)

    assert {title.external_id for title in selected} == {"tt0084787", "tt0081505"}
