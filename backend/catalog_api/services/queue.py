"""Redis-backed queue that hands catalog runs to the RQ worker."""
from __future__ import annotations

import logging
from typing import Any

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue
from rq.exceptions import InvalidJobOperation, NoSuchJobError
from rq.job import Job

try:  # pragma: no cover - optional dependency for test environments
    import fakeredis
except ModuleNotFoundError:  # pragma: no cover - runtime path without fakeredis
    fakeredis = None  # type: ignore[assignment]

from ..schemas import JobModel
from ..settings import CatalogSettings
from ..stores.job_log_store import JobLogStore
from ..stores.job_store import JobStore
from .tasks import JOB_TYPES, execute_catalog_job

logger = logging.getLogger(__name__)

# Enrichment runs pace their provider calls, so a large run can take hours.
JOB_TIMEOUT_SECONDS = 6 * 60 * 60
RESULT_TTL_SECONDS = 24 * 60 * 60


class JobQueueError(RuntimeError):
    """Raised when a run cannot be handed to the queue."""


def _connect(redis_url: str) -> Redis:
    if redis_url.startswith("fakeredis://"):
        if fakeredis is None:  # pragma: no cover - safety branch
            raise JobQueueError("fakeredis is required for fakeredis:// URLs")
        return fakeredis.FakeRedis()  # type: ignore[return-value]
    return Redis.from_url(redis_url)


class JobQueueService:
    """Persists a job record, then enqueues its execution under the same id.

    Sharing the id between the ``catalog_jobs`` row and the RQ job lets a
    cancellation reach both.
    """

    def __init__(self, settings: CatalogSettings) -> None:
        self._settings = settings
        self._connection = _connect(settings.redis_url)
        self._queue = Queue(settings.redis_queue_name, connection=self._connection)

    @property
    def queue(self) -> Queue:
        return self._queue

    @property
    def connection(self) -> Redis:
        return self._connection

    def ping(self) -> bool:
        try:
            return bool(self._connection.ping())
        except RedisError:
            return False

    def enqueue(
        self,
        job_store: JobStore,
        log_store: JobLogStore,
        job_type: str,
        payload: dict[str, Any] | None = None,
    ) -> JobModel:
        """Record a queued run and schedule it for the worker."""

        if job_type not in JOB_TYPES:
            raise JobQueueError(f"Unsupported job type: {job_type}")

        job = job_store.enqueue(job_type, payload)
        log_store.log(
            job.id,
            f"Job {job_type} enqueued",
            context={"payload": payload} if payload else None,
        )
        task_kwargs = {
            "job_id": job.id,
            "job_type": job_type,
            "payload": payload,
            "settings": self._settings.model_dump(),
            "worker_name": self._settings.queue_worker_name,
        }
        try:
            self._queue.enqueue(
                execute_catalog_job,
                job_id=job.id,
                job_timeout=JOB_TIMEOUT_SECONDS,
                result_ttl=RESULT_TTL_SECONDS,
                kwargs=task_kwargs,
            )
        except RedisError as exc:  # pragma: no cover - failure path
            log_store.log(job.id, "Failed to enqueue job", level="error", context={"error": str(exc)})
            job_store.mark_failed(job.id, error_message="queue_unavailable", progress=0.0)
            raise JobQueueError("Unable to enqueue job") from exc
        return job

    def discard(self, job_id: str) -> bool:
        """Drop a run that is still waiting in the queue; returns whether one was removed."""

        try:
            Job.fetch(job_id, connection=self._connection).cancel()
        except (NoSuchJobError, InvalidJobOperation):
            return False
        except RedisError as exc:
            logger.warning("Could not remove job %s from the queue: %s", job_id, exc)
            return False
        return True
