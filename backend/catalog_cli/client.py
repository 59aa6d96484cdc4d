"""HTTP client helpers for the catalog CLI."""
from __future__ import annotations

import httpx

DEFAULT_API_BASE = "http://localhost:8000"


def create_client(base_url: str, *, timeout: float = 10.0, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Instantiate an HTTPX client pointed at the catalog API."""

    return httpx.Client(base_url=base_url or DEFAULT_API_BASE, timeout=timeout, transport=transport)
