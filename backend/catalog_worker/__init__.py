"""RQ worker process for catalog jobs."""
