"""Clients for the external metadata and availability providers."""

from .base import ProviderConfig, ProviderOutcome, ThrottledClient
from .omdb import OMDB_ENDPOINT, MetadataProviderClient, MetadataResult, TitleMetadata
from .watchmode import WATCHMODE_ENDPOINT, AvailabilityProviderClient, AvailabilityResult

__all__ = [
    "AvailabilityProviderClient",
    "AvailabilityResult",
    "MetadataProviderClient",
    "MetadataResult",
    "OMDB_ENDPOINT",
    "ProviderConfig",
    "ProviderOutcome",
    "ThrottledClient",
    "TitleMetadata",
    "WATCHMODE_ENDPOINT",
]
