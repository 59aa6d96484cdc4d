"""Wire pipeline orchestrators to settings and the catalog database."""
from __future__ import annotations

from contextlib import ExitStack, contextmanager
from typing import Iterator

import httpx
from sqlalchemy.engine import Engine

from backend.pipeline.enrichment import EnrichmentOrchestrator, ProgressCallback
from backend.pipeline.history import RunHistoryLog
from backend.pipeline.importer import ImportOrchestrator
from backend.pipeline.providers import (
    AvailabilityProviderClient,
    MetadataProviderClient,
    ProviderConfig,
)
from backend.pipeline.selector import EnrichmentSelector

from ..settings import CatalogSettings
from ..stores.catalog_store import CatalogStore
from ..stores.curated_list_store import CuratedListStore


def metadata_provider_config(settings: CatalogSettings) -> ProviderConfig:
    return ProviderConfig(
        name="OMDb",
        api_key=settings.omdb_api_key,
        base_url=settings.omdb_base_url,
        delay_seconds=settings.omdb_delay_seconds,
        timeout=settings.provider_timeout_seconds,
    )


def availability_provider_config(settings: CatalogSettings) -> ProviderConfig:
    return ProviderConfig(
        name="Watchmode",
        api_key=settings.watchmode_api_key,
        base_url=settings.watchmode_base_url,
        delay_seconds=settings.watchmode_delay_seconds,
        timeout=settings.provider_timeout_seconds,
        region=settings.watchmode_region,
    )


def build_catalog_store(settings: CatalogSettings, engine: Engine) -> CatalogStore:
    return CatalogStore(engine, lookup_chunk_size=settings.lookup_chunk_size)


def build_import_orchestrator(
    settings: CatalogSettings,
    engine: Engine,
    *,
    progress: ProgressCallback | None = None,
) -> ImportOrchestrator:
    return ImportOrchestrator(
        build_catalog_store(settings, engine),
        history=RunHistoryLog(settings.run_history_path),
        progress=progress,
    )


@contextmanager
def enrichment_orchestrator(
    settings: CatalogSettings,
    engine: Engine,
    *,
    metadata_only: bool = False,
    progress: ProgressCallback | None = None,
    transport: httpx.BaseTransport | None = None,
) -> Iterator[EnrichmentOrchestrator]:
    """Yield an orchestrator whose provider clients are closed on exit.

    Missing provider keys raise ``ProviderConfigError`` here, before any
    candidate is selected.
    """

    store = build_catalog_store(settings, engine)
    with ExitStack() as stack:
        metadata_client = stack.enter_context(
            MetadataProviderClient(metadata_provider_config(settings), transport=transport)
        )
        availability_client = None
        if not metadata_only:
            availability_client = stack.enter_context(
                AvailabilityProviderClient(availability_provider_config(settings), transport=transport)
            )
        yield EnrichmentOrchestrator(
            store,
            EnrichmentSelector(
                store,
                lists=CuratedListStore(engine),
                recent_window_years=settings.recent_window_years,
            ),
            metadata_client=metadata_client,
            availability_client=availability_client,
            history=RunHistoryLog(settings.run_history_path),
            progress=progress,
        )
