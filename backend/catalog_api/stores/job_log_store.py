"""Per-job event log used to follow pipeline runs."""
from __future__ import annotations

from typing import Any

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from ..models import JobLogRecord
from ..schemas import JobLogCreate, JobLogModel


class JobLogStore:
    """Pipeline runs report start, progress and completion here.

    A job's log is where a run can be followed while it is still going; the
    statistics of each report travel in ``context``.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def append(self, job_id: str, entry: JobLogCreate) -> JobLogModel:
        record = JobLogRecord(
            job_id=job_id,
            level=entry.level.lower(),
            message=entry.message,
            context=entry.context,
        )
        with Session(self._engine) as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def log(
        self,
        job_id: str,
        message: str,
        *,
        level: str = "info",
        context: dict[str, Any] | None = None,
    ) -> JobLogModel:
        """Shortcut for ``append`` used by the queue and the task bodies."""

        return self.append(job_id, JobLogCreate(level=level, message=message, context=context))

    def list_for_job(
        self,
        job_id: str,
        *,
        limit: int = 100,
        levels: list[str] | None = None,
    ) -> list[JobLogModel]:
        """Events for one job, oldest first, optionally restricted to some levels."""

        statement = select(JobLogRecord).where(JobLogRecord.job_id == job_id)
        if levels:
            wanted = {level.lower() for level in levels}
            statement = statement.where(JobLogRecord.level.in_(sorted(wanted)))
        statement = statement.order_by(JobLogRecord.created_at, JobLogRecord.id).limit(limit)
        with Session(self._engine) as session:
            return [_to_model(record) for record in session.exec(statement).all()]


def _to_model(record: JobLogRecord) -> JobLogModel:
    return JobLogModel.model_validate(record, from_attributes=True)
