"""Router exports for the catalog API."""
from . import catalog, health, jobs, lists, runs

__all__ = ["catalog", "health", "jobs", "lists", "runs"]
