"""Application factory for the Cryptarr catalog API."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import catalog, health, jobs, lists, runs
from .settings import CatalogSettings
from .state import AppState


def create_app(settings: CatalogSettings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""

    resolved_settings = settings or CatalogSettings()
    app_state = AppState(settings=resolved_settings)

    app = FastAPI(title="Cryptarr Catalog API", version="0.1.0")
    app.state.app_state = app_state
    app.state.settings = app_state.settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router in (
        health.router,
        jobs.router,
        catalog.router,
        lists.router,
        runs.router,
    ):
        app.include_router(router)

    return app
