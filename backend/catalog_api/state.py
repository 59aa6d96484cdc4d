"""Shared state container for the catalog API."""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine

from backend.pipeline.history import RunHistoryLog

from .db import create_engine_from_settings, init_database
from .services.queue import JobQueueService
from .settings import CatalogSettings
from .stores.catalog_store import CatalogStore
from .stores.curated_list_store import CuratedListStore
from .stores.job_log_store import JobLogStore
from .stores.job_store import JobStore


@dataclass(slots=True)
class AppState:
    """Encapsulates mutable application state shared across routers."""

    settings: CatalogSettings
    engine: Engine
    catalog_store: CatalogStore
    list_store: CuratedListStore
    job_store: JobStore
    job_log_store: JobLogStore
    job_queue: JobQueueService
    run_history: RunHistoryLog

    def __init__(self, settings: CatalogSettings) -> None:
        self.settings = settings
        self.engine = create_engine_from_settings(settings)
        init_database(self.engine)
        self.catalog_store = CatalogStore(self.engine, lookup_chunk_size=settings.lookup_chunk_size)
        self.list_store = CuratedListStore(self.engine)
        self.job_store = JobStore(self.engine)
        self.job_log_store = JobLogStore(self.engine)
        self.job_queue = JobQueueService(settings)
        self.run_history = RunHistoryLog(settings.run_history_path)
