"""Typer command line interface for the catalog pipeline."""

from .app import app

__all__ = ["app"]
