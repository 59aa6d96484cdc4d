"""Persistence layer for catalog titles, curated lists and jobs."""

from .catalog_store import CatalogStore
from .curated_list_store import CuratedListExistsError, CuratedListStore
from .job_log_store import JobLogStore
from .job_store import JobStore

__all__ = [
    "CatalogStore",
    "CuratedListExistsError",
    "CuratedListStore",
    "JobLogStore",
    "JobStore",
]
