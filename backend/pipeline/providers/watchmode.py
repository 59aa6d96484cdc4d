"""Watchmode availability provider client."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

import httpx
from pydantic import BaseModel, ValidationError

from ..errors import ProviderResponseError
from ..records import AvailabilitySource, OfferType
from .base import ProviderOutcome, ThrottledClient, describe_http_failure

logger = logging.getLogger(__name__)

WATCHMODE_ENDPOINT = "https://api.watchmode.com/v1/"

OFFER_TYPES: dict[str, OfferType] = {
    "sub": OfferType.SUBSCRIPTION,
    "subscription": OfferType.SUBSCRIPTION,
    "addon": OfferType.SUBSCRIPTION,
    "free": OfferType.FREE,
    "tve": OfferType.FREE,
    "rent": OfferType.RENT,
    "buy": OfferType.BUY,
    "purchase": OfferType.BUY,
}


class SearchHit(BaseModel):
    id: int
    name: str | None = None
    year: int | None = None
    imdb_id: str | None = None
    tmdb_id: int | None = None


class SearchPayload(BaseModel):
    title_results: list[SearchHit] = []


class SourcePayload(BaseModel):
    source_id: int
    name: str
    type: str
    region: str | None = None
    web_url: str | None = None
    ios_url: str | None = None
    android_url: str | None = None
    format: str | None = None
    price: float | None = None


@dataclass(slots=True)
class AvailabilityResult:
    outcome: ProviderOutcome
    provider_title_id: str | None = None
    tmdb_id: str | None = None
    sources: list[AvailabilitySource] = field(default_factory=list)
    error: str | None = None
    credits: int = 0


class AvailabilityProviderClient(ThrottledClient):
    """Resolves a title on Watchmode and lists where it can be watched.

    A lookup is a two step sequence: a search by external id, then a sources
    request for the resolved provider title. The second step only runs when the
    first one found a title, so a full lookup costs ``CREDITS_PER_LOOKUP``.
    """

    CREDITS_PER_LOOKUP = 2

    def __init__(self, *args, clock: Callable[[], datetime] = datetime.utcnow, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._clock = clock

    def fetch_availability(self, external_id: str) -> AvailabilityResult:
        credits = 0
        try:
            credits += 1
            search = self._get(
                "search/",
                {
                    "apiKey": self.config.api_key,
                    "search_field": "imdb_id",
                    "search_value": external_id,
                },
            )
            if search.status_code != 200:
                return AvailabilityResult(
                    ProviderOutcome.FAILED, error=describe_http_failure(search), credits=credits
                )
            hits = self._parse(search, SearchPayload, external_id).title_results
            if not hits:
                return AvailabilityResult(ProviderOutcome.NO_MATCH, credits=credits)

            hit = hits[0]
            provider_title_id = str(hit.id)
            tmdb_id = str(hit.tmdb_id) if hit.tmdb_id else None

            credits += 1
            response = self._get(
                f"title/{provider_title_id}/sources/",
                {"apiKey": self.config.api_key, "regions": self.config.region},
            )
        except httpx.HTTPError as exc:
            logger.warning("Watchmode request for %s failed: %s", external_id, exc)
            return AvailabilityResult(ProviderOutcome.FAILED, error=str(exc), credits=credits)

        if response.status_code != 200:
            return AvailabilityResult(
                ProviderOutcome.FAILED,
                provider_title_id=provider_title_id,
                tmdb_id=tmdb_id,
                error=describe_http_failure(response),
                credits=credits,
            )

        data = self._decode(response)
        if not isinstance(data, list):
            raise ProviderResponseError(self.name, f"expected a list of sources for {external_id}")
        try:
            payloads = [SourcePayload.model_validate(item) for item in data]
        except ValidationError as exc:
            raise ProviderResponseError(self.name, f"unexpected sources payload for {external_id}") from exc

        sources = self._to_sources(payloads)
        outcome = ProviderOutcome.FOUND if sources else ProviderOutcome.NO_MATCH
        return AvailabilityResult(
            outcome,
            provider_title_id=provider_title_id,
            tmdb_id=tmdb_id,
            sources=sources,
            credits=credits,
        )

    def _parse(self, response: httpx.Response, model: type[SearchPayload], external_id: str) -> SearchPayload:
        data = self._decode(response)
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise ProviderResponseError(self.name, f"unexpected search payload for {external_id}") from exc

    def _to_sources(self, payloads: list[SourcePayload]) -> list[AvailabilitySource]:
        region = self.config.region.upper()
        verified_at = self._clock()
        seen: set[tuple[str, OfferType]] = set()
        sources: list[AvailabilitySource] = []
        for payload in payloads:
            offer_type = OFFER_TYPES.get(payload.type.lower())
            if offer_type is None:
                continue
            source_region = (payload.region or region).upper()
            if source_region != region:
                continue
            deep_link = payload.web_url or payload.ios_url or payload.android_url
            if not deep_link:
                continue
            key = (str(payload.source_id), offer_type)
            if key in seen:
                continue
            seen.add(key)
            sources.append(
                AvailabilitySource(
                    service_name=payload.name,
                    service_id=str(payload.source_id),
                    offer_type=offer_type,
                    deep_link=deep_link,
                    region=source_region,
                    verified_at=verified_at,
                    price=payload.price,
                    quality=payload.format,
                )
            )
        return sources
