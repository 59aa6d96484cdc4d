"""Catalog service: storage, admin API and job orchestration."""

from .app import create_app
from .settings import CatalogSettings

__all__ = ["CatalogSettings", "create_app"]
