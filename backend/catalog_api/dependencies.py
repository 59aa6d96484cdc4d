"""FastAPI dependencies for the catalog API."""
from fastapi import Depends, Request

from backend.pipeline.history import RunHistoryLog

from .services.queue import JobQueueService
from .state import AppState
from .stores.catalog_store import CatalogStore
from .stores.curated_list_store import CuratedListStore
from .stores.job_log_store import JobLogStore
from .stores.job_store import JobStore


def get_app_state(request: Request) -> AppState:
    """Resolve the shared application state from the FastAPI request."""
    return request.app.state.app_state


def get_catalog_store(app_state: AppState = Depends(get_app_state)) -> CatalogStore:
    return app_state.catalog_store


def get_list_store(app_state: AppState = Depends(get_app_state)) -> CuratedListStore:
    return app_state.list_store


def get_job_store(app_state: AppState = Depends(get_app_state)) -> JobStore:
    return app_state.job_store


def get_job_log_store(app_state: AppState = Depends(get_app_state)) -> JobLogStore:
    return app_state.job_log_store


def get_job_queue(app_state: AppState = Depends(get_app_state)) -> JobQueueService:
    return app_state.job_queue


def get_run_history(app_state: AppState = Depends(get_app_state)) -> RunHistoryLog:
    return app_state.run_history
