"""Engine construction and schema bootstrap for the catalog database."""
from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import Engine, make_url
from sqlmodel import SQLModel, create_engine

from . import models  # noqa: F401  registers table metadata
from .settings import CatalogSettings


def _prepare_sqlite_file(database_url: str) -> dict[str, object]:
    """Return SQLite connect args, creating the database folder on the way."""

    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return {}
    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    # Stores are shared between the API threadpool and background jobs.
    return {"check_same_thread": False}


def create_engine_from_settings(settings: CatalogSettings) -> Engine:
    connect_args = _prepare_sqlite_file(settings.database_url)
    return create_engine(settings.database_url, echo=settings.database_echo, connect_args=connect_args)


def init_database(engine: Engine) -> None:
    """Create the catalog, curated list and job tables if they are missing."""

    SQLModel.metadata.create_all(engine)
