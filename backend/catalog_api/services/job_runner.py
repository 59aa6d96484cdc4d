"""Inline job execution for callers that do not go through the queue."""
from __future__ import annotations

from typing import Any

from sqlalchemy.engine import Engine

from ..schemas import JobModel
from ..settings import CatalogSettings
from ..stores.job_log_store import JobLogStore
from ..stores.job_store import JobStore
from .tasks import run_job_lifecycle


def run_sync_job(
    settings: CatalogSettings,
    engine: Engine,
    job_type: str,
    payload: dict[str, Any] | None = None,
    *,
    worker_id: str = "catalog-cli",
) -> JobModel:
    """Record a job and execute it in the current process.

    The CLI uses this so local runs leave the same job and log trail as runs
    picked up by the worker. Failures mark the job failed and propagate.
    """

    job = JobStore(engine).enqueue(job_type, payload)
    JobLogStore(engine).log(
        job.id,
        f"Job {job_type} started inline",
        context={"payload": payload} if payload else None,
    )
    return run_job_lifecycle(job.id, job_type, payload, settings, engine, worker_id=worker_id)
