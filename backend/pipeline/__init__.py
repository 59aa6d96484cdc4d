"""Title ingestion and enrichment pipeline."""

from .enrichment import EnrichmentOptions, EnrichmentOrchestrator, EnrichmentReport, RunState
from .errors import (
    ConfigurationError,
    PipelineError,
    ProviderConfigError,
    ProviderResponseError,
    RecordNotFoundError,
)
from .history import RunHistoryLog
from .importer import ImportOptions, ImportOrchestrator, ImportReport
from .selector import EnrichmentNeeds, EnrichmentSelector

__all__ = [
    "ConfigurationError",
    "EnrichmentNeeds",
    "EnrichmentOptions",
    "EnrichmentOrchestrator",
    "EnrichmentReport",
    "EnrichmentSelector",
    "ImportOptions",
    "ImportOrchestrator",
    "ImportReport",
    "PipelineError",
    "ProviderConfigError",
    "ProviderResponseError",
    "RecordNotFoundError",
    "RunHistoryLog",
    "RunState",
]
