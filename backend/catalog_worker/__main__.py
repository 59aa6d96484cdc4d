"""Entry point for running the catalog RQ worker."""
from __future__ import annotations

import logging
import os

from rq import SimpleWorker, Worker

from backend.catalog_api.services.queue import JobQueueService
from backend.catalog_api.settings import CatalogSettings


def main() -> None:
    """Start an RQ worker connected to the configured catalog queue."""

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = CatalogSettings()
    queue_service = JobQueueService(settings)

    # Fork-based workers are unavailable on Windows.
    worker_class = SimpleWorker if os.name == "nt" else Worker
    worker = worker_class(
        [queue_service.queue],
        connection=queue_service.connection,
        name=settings.queue_worker_name,
    )
    logging.getLogger(__name__).info("Listening on queue %s", settings.redis_queue_name)
    worker.work(with_scheduler=False)


if __name__ == "__main__":  # pragma: no cover - manual entrypoint
    main()
