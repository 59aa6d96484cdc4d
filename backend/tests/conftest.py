"""Shared fixtures: an isolated SQLite catalog per test."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable
from uuid import uuid4

import pytest
from sqlmodel import Session

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.catalog_api.db import create_engine_from_settings, init_database  # noqa: E402
from backend.catalog_api.models import CatalogTitleRecord, CuratedListRecord  # noqa: E402
from backend.catalog_api.settings import CatalogSettings  # noqa: E402
from backend.catalog_api.stores.catalog_store import CatalogStore  # noqa: E402


@pytest.fixture()
def settings(tmp_path: Path) -> CatalogSettings:
    return CatalogSettings(
        database_url=f"sqlite:///{tmp_path / 'catalog.db'}",
        redis_url="fakeredis://",
        run_history_path=str(tmp_path / "history.jsonl"),
        omdb_api_key=None,
        watchmode_api_key=None,
        omdb_delay_seconds=0,
        watchmode_delay_seconds=0,
    )


@pytest.fixture()
def engine(settings: CatalogSettings):
    engine = create_engine_from_settings(settings)
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def store(engine) -> CatalogStore:
    return CatalogStore(engine)


@pytest.fixture()
def seed_title(engine) -> Callable[..., str]:
    """Insert a catalog row directly and return its internal id."""

    def _seed(external_id: str, **fields: Any) -> str:
        record_id = fields.pop("id", uuid4().hex)
        record = CatalogTitleRecord(
            id=record_id,
            external_id=external_id,
            title=fields.pop("title", f"Title {external_id}"),
            **fields,
        )
        with Session(engine) as session:
            session.add(record)
            session.commit()
        return record_id

    return _seed


@pytest.fixture()
def seed_list(engine) -> Callable[..., None]:
    def _seed(slug: str, entries: list[str], *, published: bool = True) -> None:
        with Session(engine) as session:
            session.add(
                CuratedListRecord(
                    id=uuid4().hex,
                    slug=slug,
                    name=slug.title(),
                    published=published,
                    entries=entries,
                )
            )
            session.commit()

    return _seed
