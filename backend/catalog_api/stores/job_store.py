"""Database-backed store for import and enrichment job records."""
from __future__ import annotations

from collections import Counter
from datetime import datetime
from threading import Lock
from typing import Any
from uuid import uuid4

from sqlmodel import Session, select

from ..models import JobRecord
from ..schemas import JobMetricsModel, JobModel

TERMINAL_STATUSES = frozenset({"completed", "failed", "cancelled"})
ENRICHMENT_JOB_TYPES = frozenset({"enrich", "enrich_title"})


class JobStore:
    """Thread-safe persistence of pipeline runs and their lifecycle.

    A job moves ``queued -> running -> completed | failed``; ``cancelled`` can be
    reached from any non-terminal state and is never overwritten by a run that
    finishes afterwards. Finished jobs keep the run report in
    ``result`` so the API can show what a run did after the worker is gone.
    """

    def __init__(self, engine) -> None:
        self._engine = engine
        self._lock = Lock()

    def enqueue(self, job_type: str, payload: dict[str, Any] | None = None) -> JobModel:
        record = JobRecord(id=uuid4().hex, type=job_type, payload=payload)
        with self._lock, Session(self._engine) as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def list(
        self,
        *,
        limit: int = 50,
        statuses: list[str] | None = None,
        job_type: str | None = None,
    ) -> list[JobModel]:
        """Return the most recent jobs, newest first."""

        statement = select(JobRecord)
        wanted = sorted({status.lower() for status in statuses or [] if status})
        if wanted:
            statement = statement.where(JobRecord.status.in_(wanted))
        if job_type:
            statement = statement.where(JobRecord.type == job_type)
        statement = statement.order_by(JobRecord.created_at.desc()).limit(limit)

        with Session(self._engine) as session:
            return [_to_model(record) for record in session.exec(statement).all()]

    def get(self, job_id: str) -> JobModel | None:
        with Session(self._engine) as session:
            record = session.get(JobRecord, job_id)
            return _to_model(record) if record else None

    def mark_running(self, job_id: str, *, worker_id: str | None = None) -> JobModel:
        def _start(record: JobRecord) -> None:
            record.status = "running"
            record.progress = 0.0
            record.started_at = record.started_at or datetime.utcnow()
            if worker_id:
                record.worker_id = worker_id

        return self._apply(job_id, _start)

    def update_progress(self, job_id: str, progress: float) -> JobModel:
        """Record partial progress without changing the status."""

        def _progress(record: JobRecord) -> None:
            record.progress = min(max(progress, 0.0), 1.0)

        return self._apply(job_id, _progress)

    def mark_completed(self, job_id: str, *, result: dict[str, Any] | None = None) -> JobModel:
        """Store the result; a job cancelled while running keeps its cancelled status."""

        def _complete(record: JobRecord) -> None:
            if result is not None:
                record.result = result
            if record.status == "cancelled":
                return
            record.status = "completed"
            record.progress = 1.0
            record.finished_at = datetime.utcnow()

        return self._apply(job_id, _complete)

    def mark_failed(self, job_id: str, *, error_message: str, progress: float | None = None) -> JobModel:
        def _fail(record: JobRecord) -> None:
            if record.status == "cancelled":
                return
            record.status = "failed"
            record.finished_at = datetime.utcnow()
            record.error_message = error_message
            if progress is not None:
                record.progress = progress

        return self._apply(job_id, _fail)

    def mark_cancelled(self, job_id: str, *, reason: str | None = None) -> JobModel:
        def _cancel(record: JobRecord) -> None:
            record.status = "cancelled"
            record.finished_at = datetime.utcnow()
            if reason:
                record.error_message = reason

        return self._apply(job_id, _cancel)

    def _apply(self, job_id: str, change) -> JobModel:
        with self._lock, Session(self._engine) as session:
            record = session.get(JobRecord, job_id)
            if record is None:
                raise KeyError(f"Job {job_id} not found")
            change(record)
            record.updated_at = datetime.utcnow()
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def metrics(self) -> JobMetricsModel:
        """Aggregate job counts, durations and provider credits spent by enrichment runs."""

        with Session(self._engine) as session:
            records = session.exec(select(JobRecord)).all()

        status_counts: Counter[str] = Counter()
        type_counts: Counter[str] = Counter()
        durations: list[float] = []
        last_finished: datetime | None = None
        credits_spent = 0
        for record in records:
            status_counts[record.status] += 1
            type_counts[record.type] += 1
            if record.started_at and record.finished_at:
                durations.append((record.finished_at - record.started_at).total_seconds())
            if record.finished_at and (last_finished is None or record.finished_at > last_finished):
                last_finished = record.finished_at
            if record.type in ENRICHMENT_JOB_TYPES and record.result:
                credits_spent += int((record.result.get("stats") or {}).get("credits_used") or 0)

        return JobMetricsModel(
            total=len(records),
            status_counts=dict(sorted(status_counts.items())),
            type_counts=dict(sorted(type_counts.items())),
            average_duration_seconds=sum(durations) / len(durations) if durations else None,
            last_finished_at=last_finished,
            credits_spent=credits_spent,
        )


def _to_model(record: JobRecord) -> JobModel:
    duration_seconds: float | None = None
    if record.started_at and record.finished_at:
        duration_seconds = (record.finished_at - record.started_at).total_seconds()

    return JobModel(
        id=record.id,
        type=record.type,
        status=record.status,
        progress=record.progress,
        worker_id=record.worker_id,
        payload=record.payload,
        result=record.result,
        created_at=record.created_at,
        updated_at=record.updated_at,
        started_at=record.started_at,
        finished_at=record.finished_at,
        error_message=record.error_message,
        duration_seconds=duration_seconds,
    )
