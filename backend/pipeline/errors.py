"""Exception types raised by the ingestion and enrichment pipeline."""
from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for pipeline failures."""


class ConfigurationError(PipelineError):
    """Raised when a run cannot start because its configuration is incomplete."""


class ProviderConfigError(ConfigurationError):
    """Raised when a provider client is built without the credentials it needs."""


class ProviderResponseError(PipelineError):
    """Raised when a provider returns a body that cannot be parsed at all."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class RecordNotFoundError(PipelineError):
    """Raised when a run targets a catalog record that does not exist."""
