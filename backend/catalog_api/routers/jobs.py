"""Endpoints for queueing and inspecting pipeline runs."""
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from backend.pipeline.normalizer import normalize_external_id

from ..dependencies import get_job_log_store, get_job_queue, get_job_store
from ..schemas import (
    JobCancelRequest,
    JobLogCreate,
    JobLogModel,
    JobMetricsModel,
    JobModel,
    JobRunRequest,
)
from ..services.queue import JobQueueError, JobQueueService
from ..stores.job_log_store import JobLogStore
from ..stores.job_store import TERMINAL_STATUSES, JobStore

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _require_job(store: JobStore, job_id: str) -> JobModel:
    job = store.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def _run_payload(request: JobRunRequest) -> dict[str, Any] | None:
    """Validate run parameters that the worker cannot recover from."""

    if request.type != "enrich_title":
        return request.payload
    payload = dict(request.payload or {})
    external_id = normalize_external_id(payload.get("external_id"))
    if external_id is None:
        raise HTTPException(
            status_code=422, detail="enrich_title requires a valid payload.external_id"
        )
    payload["external_id"] = external_id
    return payload


@router.post("/run", response_model=JobModel, status_code=201)
def run_job(
    request: JobRunRequest,
    store: JobStore = Depends(get_job_store),
    log_store: JobLogStore = Depends(get_job_log_store),
    queue: JobQueueService = Depends(get_job_queue),
) -> JobModel:
    """Queue an import, an enrichment pass or a single-title refresh."""

    payload = _run_payload(request)
    try:
        return queue.enqueue(store, log_store, request.type, payload)
    except JobQueueError as exc:  # pragma: no cover - queue failures
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.get("", response_model=list[JobModel])
def list_jobs(
    limit: int = Query(default=50, ge=1, le=100),
    statuses: Annotated[list[str] | None, Query(alias="status")] = None,
    job_type: str | None = Query(default=None, alias="type"),
    store: JobStore = Depends(get_job_store),
) -> list[JobModel]:
    return store.list(limit=limit, statuses=statuses, job_type=job_type)


@router.get("/metrics", response_model=JobMetricsModel)
def job_metrics(
    store: JobStore = Depends(get_job_store),
    queue: JobQueueService = Depends(get_job_queue),
) -> JobMetricsModel:
    """Job counts plus the number of runs still waiting for a worker."""

    return store.metrics().model_copy(update={"queue_depth": len(queue.queue)})


@router.get("/{job_id}", response_model=JobModel)
def get_job(job_id: str, store: JobStore = Depends(get_job_store)) -> JobModel:
    return _require_job(store, job_id)


@router.post("/{job_id}/cancel", response_model=JobModel)
def cancel_job(
    job_id: str,
    request: JobCancelRequest | None = Body(default=None),
    store: JobStore = Depends(get_job_store),
    log_store: JobLogStore = Depends(get_job_log_store),
    queue: JobQueueService = Depends(get_job_queue),
) -> JobModel:
    """Cancel a run that has not finished and drop it from the queue."""

    existing = _require_job(store, job_id)
    if existing.status in TERMINAL_STATUSES:
        raise HTTPException(status_code=409, detail=f"Job already {existing.status}")

    reason = request.reason if request else None
    job = store.mark_cancelled(job_id, reason=reason)
    dequeued = queue.discard(job_id)
    log_store.log(
        job_id,
        "Job cancelled",
        level="warning",
        context={"reason": reason, "dequeued": dequeued},
    )
    return job


@router.get("/{job_id}/logs", response_model=list[JobLogModel])
def list_job_logs(
    job_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    levels: Annotated[list[str] | None, Query(alias="level")] = None,
    store: JobStore = Depends(get_job_store),
    log_store: JobLogStore = Depends(get_job_log_store),
) -> list[JobLogModel]:
    """Progress and result events of a run, oldest first."""

    _require_job(store, job_id)
    return log_store.list_for_job(job_id, limit=limit, levels=levels)


@router.post("/{job_id}/logs", response_model=JobLogModel, status_code=201)
def append_job_log(
    job_id: str,
    payload: JobLogCreate,
    store: JobStore = Depends(get_job_store),
    log_store: JobLogStore = Depends(get_job_log_store),
) -> JobLogModel:
    _require_job(store, job_id)
    return log_store.append(job_id, payload)
