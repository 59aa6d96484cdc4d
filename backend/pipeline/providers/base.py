"""Shared plumbing for rate-limited provider clients."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

import httpx

from ..errors import ProviderConfigError, ProviderResponseError

logger = logging.getLogger(__name__)


class ProviderOutcome(str, Enum):
    """Result classification for a single provider lookup."""

    FOUND = "found"
    NO_MATCH = "no_match"
    FAILED = "failed"


@dataclass(slots=True)
class ProviderConfig:
    """Connection settings for one provider, resolved once at process start."""

    name: str
    api_key: str | None
    base_url: str
    delay_seconds: float = 0.0
    timeout: float = 20.0
    region: str = "US"


class ThrottledClient:
    """HTTP client that waits a fixed delay before every request and counts credits."""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not config.api_key:
            raise ProviderConfigError(f"{config.name} API key is not configured")
        self.config = config
        self.credits_used = 0
        self._sleep = sleep
        self._client = httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return self.config.name

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _get(self, path: str, params: dict[str, Any]) -> httpx.Response:
        """Issue one GET request; raises ``httpx.HTTPError`` on transport failures."""

        if self.config.delay_seconds > 0:
            self._sleep(self.config.delay_seconds)
        self.credits_used += 1
        logger.debug("%s GET %s", self.name, path)
        return self._client.get(path, params=params)

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderResponseError(
                self.name, f"unparseable response body (HTTP {response.status_code})"
            ) from exc


def describe_http_failure(response: httpx.Response) -> str:
    if response.status_code == 429:
        return "rate limited (HTTP 429)"
    return f"unexpected HTTP {response.status_code}"
