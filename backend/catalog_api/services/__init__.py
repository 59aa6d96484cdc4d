"""Service layer: queue integration, job bodies and pipeline wiring."""

from .job_runner import run_sync_job
from .pipelines import build_import_orchestrator, enrichment_orchestrator
from .queue import JobQueueError, JobQueueService
from .tasks import JOB_TYPES, execute_catalog_job, run_pipeline

__all__ = [
    "JOB_TYPES",
    "JobQueueError",
    "JobQueueService",
    "build_import_orchestrator",
    "enrichment_orchestrator",
    "execute_catalog_job",
    "run_pipeline",
    "run_sync_job",
]
