"""Job bodies shared by the RQ worker and inline CLI runs."""
from __future__ import annotations

import logging
from typing import Any

from rq import get_current_job
from sqlalchemy.engine import Engine

from backend.pipeline.enrichment import EnrichmentOptions, ProgressCallback
from backend.pipeline.errors import ConfigurationError
from backend.pipeline.importer import ImportOptions

from ..db import create_engine_from_settings, init_database
from ..schemas import JobModel
from ..settings import CatalogSettings
from ..stores.job_log_store import JobLogStore
from ..stores.job_store import JobStore
from .pipelines import build_import_orchestrator, enrichment_orchestrator

logger = logging.getLogger(__name__)

JOB_TYPES = ("import", "enrich", "enrich_title")


def job_progress(job_id: str, job_store: JobStore, log_store: JobLogStore) -> ProgressCallback:
    """Return a callback that records pipeline progress on the job."""

    def _report(message: str, context: dict[str, Any]) -> None:
        log_store.log(job_id, message, context=context)
        total = context.get("total")
        processed = context.get("processed")
        if total and processed is not None:
            # Completion is only reported by mark_completed.
            job_store.update_progress(job_id, min(processed / total, 0.99))

    return _report


def run_pipeline(
    job_type: str,
    payload: dict[str, Any] | None,
    settings: CatalogSettings,
    engine: Engine,
    *,
    progress: ProgressCallback | None = None,
) -> dict[str, Any]:
    """Execute one pipeline run and return its report as a JSON-ready mapping."""

    payload = dict(payload or {})
    if job_type == "import":
        options = ImportOptions.from_mapping(payload, batch_size=settings.import_batch_size)
        orchestrator = build_import_orchestrator(settings, engine, progress=progress)
        source = payload.get("source_path") or settings.default_import_path
        return orchestrator.run_file(source, options).to_dict()

    if job_type == "enrich":
        options = EnrichmentOptions.from_mapping(
            payload,
            limit=settings.default_enrich_limit,
            credit_limit=settings.default_credit_limit,
            mark_checked=settings.mark_checked,
        )
        with enrichment_orchestrator(
            settings, engine, metadata_only=options.metadata_only, progress=progress
        ) as orchestrator:
            return orchestrator.run(options).to_dict()

    if job_type == "enrich_title":
        external_id = payload.get("external_id")
        if not external_id:
            raise ConfigurationError("enrich_title jobs require an external_id")
        options = EnrichmentOptions.from_mapping(
            payload, limit=1, mark_checked=settings.mark_checked
        )
        with enrichment_orchestrator(
            settings, engine, metadata_only=options.metadata_only, progress=progress
        ) as orchestrator:
            return orchestrator.enrich_title(external_id, options).to_dict()

    raise ConfigurationError(f"Unknown job type: {job_type}")


def run_job_lifecycle(
    job_id: str,
    job_type: str,
    payload: dict[str, Any] | None,
    settings: CatalogSettings,
    engine: Engine,
    *,
    worker_id: str,
) -> JobModel:
    """Move a persisted job through running to completed or failed."""

    job_store = JobStore(engine)
    log_store = JobLogStore(engine)

    existing = job_store.get(job_id)
    if existing is not None and existing.status == "cancelled":
        log_store.log(job_id, "Job skipped because it was cancelled", level="warning")
        return existing

    job_store.mark_running(job_id, worker_id=worker_id)
    log_store.log(job_id, "Job started", context={"type": job_type})

    try:
        report = run_pipeline(
            job_type,
            payload,
            settings,
            engine,
            progress=job_progress(job_id, job_store, log_store),
        )
    except Exception as exc:
        job_store.mark_failed(job_id, error_message=str(exc))
        log_store.log(
            job_id,
            "Job failed",
            level="error",
            context={"error": str(exc), "error_type": type(exc).__name__},
        )
        raise

    job = job_store.mark_completed(job_id, result=report)
    if job.status == "cancelled":
        log_store.log(
            job_id,
            "Cancelled job finished running",
            level="warning",
            context={"stats": report.get("stats")},
        )
        return job
    log_store.log(job_id, "Job completed", context={"stats": report.get("stats")})
    return job


def execute_catalog_job(
    *,
    job_id: str,
    job_type: str,
    payload: dict[str, Any] | None,
    settings: dict[str, Any],
    worker_name: str,
) -> None:
    """Background worker entrypoint for catalog jobs."""

    resolved_settings = CatalogSettings.model_validate(settings)
    engine = create_engine_from_settings(resolved_settings)
    init_database(engine)

    current_job = get_current_job()
    worker_id = worker_name
    if current_job and getattr(current_job, "worker_name", None):  # pragma: no cover - runtime path
        worker_id = current_job.worker_name  # type: ignore[assignment]

    try:
        run_job_lifecycle(job_id, job_type, payload, resolved_settings, engine, worker_id=worker_id)
    finally:
        engine.dispose()
