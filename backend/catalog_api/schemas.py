"""Pydantic models exposed by the catalog API."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from backend.pipeline.records import OfferType

JobType = Literal["import", "enrich", "enrich_title"]


class QueueHealthStatus(BaseModel):
    """Represents Redis queue connectivity status."""

    status: Literal["ok", "error"] = Field(default="ok")
    detail: str | None = Field(
        default=None, description="Optional diagnostic message when the queue is unavailable."
    )


class HealthStatus(BaseModel):
    """Service health payload."""

    status: Literal["ok"] = Field(default="ok")
    version: str = Field(default="0.1.0", description="Semantic version of the API service.")
    catalog_titles: int = Field(default=0, description="Number of titles stored in the catalog.")
    queue: QueueHealthStatus = Field(
        default_factory=QueueHealthStatus,
        description="Health information for the background job queue.",
    )


class JobModel(BaseModel):
    """Represents a catalog pipeline job."""

    id: str
    type: str
    status: Literal["queued", "running", "completed", "failed", "cancelled"]
    progress: float = Field(ge=0, le=1)
    worker_id: str | None = Field(
        default=None, description="Identifier for the worker processing the job."
    )
    payload: dict[str, Any] | None = Field(
        default=None, description="Run parameters forwarded to the pipeline."
    )
    result: dict[str, Any] | None = Field(
        default=None, description="Run report stored when the job completes."
    )
    created_at: datetime = Field(
        description="Timestamp when the job record was created."
    )
    updated_at: datetime = Field(
        description="Timestamp when the job record was last updated."
    )
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error_message: str | None = None
    duration_seconds: float | None = Field(
        default=None,
        description="Execution duration calculated from started and finished timestamps.",
    )


class JobMetricsModel(BaseModel):
    """Aggregate statistics for background job processing."""

    total: int = Field(description="Total number of job records persisted in the store.")
    status_counts: dict[str, int] = Field(default_factory=dict)
    type_counts: dict[str, int] = Field(default_factory=dict)
    average_duration_seconds: float | None = Field(
        default=None,
        description="Average duration in seconds for jobs with both start and finish timestamps.",
    )
    last_finished_at: datetime | None = None
    queue_depth: int = Field(
        default=0,
        description="Number of jobs currently waiting in the Redis queue.",
    )
    credits_spent: int = Field(
        default=0,
        description="Provider credits reported by finished enrichment runs.",
    )


class JobLogCreate(BaseModel):
    """Payload used to append a new job log entry."""

    level: Literal["debug", "info", "warning", "error"] = Field(
        default="info", description="Severity level of the log entry."
    )
    message: str = Field(..., description="Human-readable log message.")
    context: dict[str, Any] | None = Field(
        default=None,
        description="Optional structured context payload for the log entry.",
    )


class JobLogModel(JobLogCreate):
    """Represents a persisted job log entry."""

    id: int
    job_id: str
    created_at: datetime


class JobRunRequest(BaseModel):
    """Payload used to enqueue a new catalog job."""

    type: JobType = Field(..., description="Pipeline to run: import, enrich or enrich_title.")
    payload: dict[str, Any] | None = Field(
        default=None, description="Run parameters such as limit, preview or external_id."
    )


class JobCancelRequest(BaseModel):
    """Payload used when cancelling a job."""

    reason: str | None = Field(
        default=None, description="Optional reason recorded with the cancellation."
    )


class AvailabilitySourceModel(BaseModel):
    """Where a title can be watched."""

    service_name: str
    service_id: str
    offer_type: OfferType
    deep_link: str
    region: str
    verified_at: datetime
    price: float | None = None
    quality: str | None = None


class CatalogTitleModel(BaseModel):
    """Catalog title as exposed to admin tooling."""

    id: str
    external_id: str
    title: str
    release_year: int | None = None
    title_type: str = "movie"
    featured: bool = False
    genres: list[str] = Field(default_factory=list)
    poster_url: str | None = None
    synopsis: str | None = None
    director_name: str | None = None
    country_list: list[str] = Field(default_factory=list)
    runtime_minutes: int | None = None
    content_rating: str | None = None
    critic_rating: float | None = None
    availability_sources: list[AvailabilitySourceModel] | None = Field(
        default=None, description="None until availability has been checked."
    )
    secondary_ids: dict[str, str] = Field(default_factory=dict)
    metadata_checked_at: datetime | None = None
    availability_checked_at: datetime | None = None
    source_modified_at: datetime | None = None
    last_enriched_at: datetime | None = None
    last_modified_at: datetime
    created_at: datetime


class CatalogListModel(BaseModel):
    """Paginated list container for catalog responses."""

    items: list[CatalogTitleModel]
    total: int
    page: int
    page_size: int


CatalogSortOption = Literal[
    "modified_desc",
    "title_asc",
    "title_desc",
    "year_desc",
    "year_asc",
    "enriched_desc",
]


class EnrichmentStatusModel(BaseModel):
    """How far enrichment has progressed across the catalog."""

    total: int = Field(description="Total number of titles in the catalog.")
    with_poster: int
    with_synopsis: int
    with_sources: int
    featured: int
    fully_enriched: int = Field(description="Titles with both a poster and streaming sources.")
    partially_enriched: int = Field(description="Titles with exactly one of poster or sources.")
    checked_not_found: int = Field(
        description="Titles without sources whose availability check found nothing."
    )
    never_checked: int = Field(description="Titles whose availability was never checked.")
    metadata_checked: int
    availability_checked: int
    last_enriched_at: datetime | None = None


class CuratedListCreate(BaseModel):
    """Payload used to create a curated list."""

    slug: str = Field(..., min_length=1, description="URL-safe unique list identifier.")
    name: str = Field(..., min_length=1)
    published: bool = Field(default=False)
    entries: list[str] = Field(
        default_factory=list, description="Catalog record ids or external ids, in display order."
    )


class CuratedListModel(CuratedListCreate):
    """Represents a persisted curated list."""

    id: str
    created_at: datetime
    updated_at: datetime


class RunHistoryEntryModel(BaseModel):
    """One finished run recorded in the history log."""

    timestamp: datetime
    kind: str
    stats: dict[str, Any] = Field(default_factory=dict)
    elapsed_seconds: float = 0.0
    params: dict[str, Any] = Field(default_factory=dict)
