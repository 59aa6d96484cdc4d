"""Database models for the catalog service."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Column, JSON
from sqlmodel import Field, SQLModel


class CatalogTitleRecord(SQLModel, table=True):
    """One title in the catalog."""

    __tablename__ = "catalog_titles"

    id: str = Field(primary_key=True, index=True)
    external_id: str = Field(unique=True, index=True)
    title: str = Field(index=True)
    release_year: int | None = Field(default=None, index=True)
    title_type: str = Field(default="movie", index=True)
    featured: bool = Field(default=False, index=True)
    genres: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    poster_url: str | None = Field(default=None)
    synopsis: str | None = Field(default=None)
    director_name: str | None = Field(default=None)
    country_list: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    runtime_minutes: int | None = Field(default=None)
    content_rating: str | None = Field(default=None)
    critic_rating: float | None = Field(default=None)
    availability_sources: list[dict[str, Any]] | None = Field(
        default=None, sa_column=Column(JSON(none_as_null=True), nullable=True)
    )
    secondary_ids: dict[str, str] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    metadata_checked_at: datetime | None = Field(default=None)
    availability_checked_at: datetime | None = Field(default=None)
    source_modified_at: datetime | None = Field(default=None)
    last_enriched_at: datetime | None = Field(default=None)
    last_modified_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class CuratedListRecord(SQLModel, table=True):
    """Editorial list of titles; only published lists feed candidate selection."""

    __tablename__ = "curated_lists"

    id: str = Field(primary_key=True, index=True)
    slug: str = Field(unique=True, index=True)
    name: str
    published: bool = Field(default=False, index=True)
    entries: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class JobRecord(SQLModel, table=True):
    """Background job metadata persisted for orchestration."""

    __tablename__ = "catalog_jobs"

    id: str = Field(primary_key=True, index=True)
    type: str = Field(index=True)
    status: str = Field(default="queued", index=True)
    progress: float = Field(default=0.0)
    worker_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    result: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    started_at: datetime | None = Field(default=None, index=True)
    finished_at: datetime | None = Field(default=None, index=True)
    error_message: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class JobLogRecord(SQLModel, table=True):
    """Structured log event associated with a catalog job."""

    __tablename__ = "catalog_job_logs"

    id: int | None = Field(default=None, primary_key=True)
    job_id: str = Field(index=True)
    level: str = Field(default="info", index=True)
    message: str
    context: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
