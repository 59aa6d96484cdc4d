"""Runtime configuration for the catalog service, CLI and worker."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .utils.paths import default_run_history_path


class CatalogSettings(BaseSettings):
    """Environment-aware settings shared by every catalog entry point."""

    database_url: str = Field(
        default="sqlite:///./data/catalog.db",
        description="Connection URL for the catalog database.",
    )
    database_echo: bool = Field(
        default=False, description="Enable SQL echo for debugging queries."
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Connection URL for the Redis-backed job queue.",
    )
    redis_queue_name: str = Field(
        default="cryptarr-catalog",
        description="RQ queue name used for catalog jobs.",
    )
    queue_worker_name: str = Field(
        default="catalog-worker",
        description="Identifier used when reporting job worker executions.",
    )
    omdb_api_key: str | None = Field(
        default=None, description="API key for the OMDb metadata provider."
    )
    omdb_base_url: str = Field(
        default="http://www.omdbapi.com/", description="Base URL for OMDb requests."
    )
    omdb_delay_seconds: float = Field(
        default=0.1, ge=0, description="Pause before every OMDb request."
    )
    watchmode_api_key: str | None = Field(
        default=None, description="API key for the Watchmode availability provider."
    )
    watchmode_base_url: str = Field(
        default="https://api.watchmode.com/v1/", description="Base URL for Watchmode requests."
    )
    watchmode_delay_seconds: float = Field(
        default=0.5, ge=0, description="Pause before every Watchmode request."
    )
    watchmode_region: str = Field(
        default="US", description="Region whose streaming sources are stored."
    )
    provider_timeout_seconds: float = Field(
        default=20.0, gt=0, description="HTTP timeout for provider requests."
    )
    default_enrich_limit: int = Field(
        default=100, ge=1, description="Candidates per enrichment run when no limit is given."
    )
    default_credit_limit: int | None = Field(
        default=None,
        ge=0,
        description="Availability credits a run may spend when no limit is given.",
    )
    recent_window_years: int = Field(
        default=6, ge=0, description="Years counted as recent when prioritising candidates."
    )
    mark_checked: bool = Field(
        default=True,
        description="Record check timestamps when a provider has nothing for a title.",
    )
    import_batch_size: int = Field(
        default=100, ge=1, description="Records written per insert batch."
    )
    lookup_chunk_size: int = Field(
        default=500, ge=1, description="Identifiers per existence-check query."
    )
    default_import_path: str = Field(
        default="./uploads/query.json", description="Dataset read when no import file is given."
    )
    run_history_path: str = Field(
        default_factory=default_run_history_path,
        description="Append-only JSON lines log of finished runs.",
    )

    model_config = SettingsConfigDict(
        env_prefix="CRYPTARR_",
        env_file=".env",
        env_file_encoding="utf-8",
    )
