"""Plain data carriers shared by the pipeline stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class OfferType(str, Enum):
    """How a streaming service offers a title."""

    SUBSCRIPTION = "subscription"
    FREE = "free"
    RENT = "rent"
    BUY = "buy"


@dataclass(slots=True)
class AvailabilitySource:
    """One place a title can be watched."""

    service_name: str
    service_id: str
    offer_type: OfferType
    deep_link: str
    region: str
    verified_at: datetime
    price: float | None = None
    quality: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping for persistence."""

        return {
            "service_name": self.service_name,
            "service_id": self.service_id,
            "offer_type": self.offer_type.value,
            "deep_link": self.deep_link,
            "region": self.region,
            "verified_at": self.verified_at.isoformat(),
            "price": self.price,
            "quality": self.quality,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AvailabilitySource":
        verified_at = data.get("verified_at")
        return cls(
            service_name=str(data.get("service_name") or ""),
            service_id=str(data.get("service_id") or ""),
            offer_type=OfferType(data.get("offer_type") or OfferType.SUBSCRIPTION.value),
            deep_link=str(data.get("deep_link") or ""),
            region=str(data.get("region") or ""),
            verified_at=(
                datetime.fromisoformat(verified_at)
                if isinstance(verified_at, str)
                else verified_at or datetime.utcnow()
            ),
            price=data.get("price"),
            quality=data.get("quality"),
        )


@dataclass(slots=True)
class NormalizedTitle:
    """A validated import row, and after merging, one candidate per external id."""

    external_id: str
    title: str
    release_year: int | None = None
    runtime_minutes: int | None = None
    directors: list[str] = field(default_factory=list)
    countries: list[str] = field(default_factory=list)
    secondary_ids: dict[str, str] = field(default_factory=dict)
    source_modified_at: datetime | None = None


@dataclass(slots=True)
class CatalogTitle:
    """Catalog record as seen by the selector and the enrichment orchestrator."""

    id: str
    external_id: str
    title: str
    release_year: int | None = None
    featured: bool = False
    genres: list[str] = field(default_factory=list)
    poster_url: str | None = None
    synopsis: str | None = None
    director_name: str | None = None
    country_list: list[str] = field(default_factory=list)
    runtime_minutes: int | None = None
    content_rating: str | None = None
    critic_rating: float | None = None
    availability_sources: list[AvailabilitySource] | None = None
    secondary_ids: dict[str, str] = field(default_factory=dict)
    metadata_checked_at: datetime | None = None
    availability_checked_at: datetime | None = None
    source_modified_at: datetime | None = None
    last_enriched_at: datetime | None = None


@dataclass(slots=True)
class EnrichmentDelta:
    """Field changes computed for a single record during one enrichment pass."""

    fields: dict[str, Any] = field(default_factory=dict)

    def set(self, name: str, value: Any) -> None:
        self.fields[name] = value

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __bool__(self) -> bool:
        return bool(self.fields)
