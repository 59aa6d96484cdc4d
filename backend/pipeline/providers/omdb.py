"""OMDb metadata provider client."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ProviderResponseError
from ..normalizer import extract_runtime
from .base import ProviderOutcome, ThrottledClient, describe_http_failure

logger = logging.getLogger(__name__)

OMDB_ENDPOINT = "http://www.omdbapi.com/"
MISSING_VALUE = "N/A"
NOT_FOUND_ERRORS = frozenset({"movie not found!", "incorrect imdb id.", "series not found!"})


class OmdbTitlePayload(BaseModel):
    """The subset of an OMDb title response the pipeline consumes."""

    model_config = ConfigDict(populate_by_name=True)

    response: str = Field(alias="Response")
    error: str | None = Field(default=None, alias="Error")
    title: str | None = Field(default=None, alias="Title")
    rated: str | None = Field(default=None, alias="Rated")
    runtime: str | None = Field(default=None, alias="Runtime")
    genre: str | None = Field(default=None, alias="Genre")
    director: str | None = Field(default=None, alias="Director")
    country: str | None = Field(default=None, alias="Country")
    plot: str | None = Field(default=None, alias="Plot")
    poster: str | None = Field(default=None, alias="Poster")
    imdb_rating: str | None = Field(default=None, alias="imdbRating")


@dataclass(slots=True)
class TitleMetadata:
    """Normalized metadata fields for one title."""

    poster_url: str | None = None
    synopsis: str | None = None
    critic_rating: float | None = None
    content_rating: str | None = None
    runtime_minutes: int | None = None
    director_name: str | None = None
    countries: list[str] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)


@dataclass(slots=True)
class MetadataResult:
    outcome: ProviderOutcome
    metadata: TitleMetadata | None = None
    error: str | None = None
    credits: int = 0


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value or value == MISSING_VALUE:
        return None
    return value


def _split(value: str | None, *, lower: bool = False) -> list[str]:
    cleaned = _clean(value)
    if cleaned is None:
        return []
    items: list[str] = []
    for part in cleaned.split(","):
        part = part.strip()
        if lower:
            part = part.lower()
        if part and part not in items:
            items.append(part)
    return items


def _to_metadata(payload: OmdbTitlePayload) -> TitleMetadata:
    rating = _clean(payload.imdb_rating)
    critic_rating: float | None = None
    if rating is not None:
        try:
            critic_rating = float(rating)
        except ValueError:
            critic_rating = None

    return TitleMetadata(
        poster_url=_clean(payload.poster),
        synopsis=_clean(payload.plot),
        critic_rating=critic_rating,
        content_rating=_clean(payload.rated),
        runtime_minutes=extract_runtime(_clean(payload.runtime)),
        director_name=_clean(payload.director),
        countries=_split(payload.country),
        genres=_split(payload.genre, lower=True),
    )


class MetadataProviderClient(ThrottledClient):
    """Fetches descriptive metadata for a title by its external id."""

    def fetch_metadata(self, external_id: str) -> MetadataResult:
        """Look up one title. Raises ``ProviderResponseError`` for unparseable bodies."""

        params = {"i": external_id, "apikey": self.config.api_key, "plot": "full"}
        try:
            response = self._get("", params)
        except httpx.HTTPError as exc:
            logger.warning("OMDb request for %s failed: %s", external_id, exc)
            return MetadataResult(ProviderOutcome.FAILED, error=str(exc), credits=1)

        if response.status_code >= 500 or response.status_code == 429:
            return MetadataResult(
                ProviderOutcome.FAILED, error=describe_http_failure(response), credits=1
            )

        data = self._decode(response)
        try:
            payload = OmdbTitlePayload.model_validate(data)
        except ValidationError as exc:
            raise ProviderResponseError(self.name, f"unexpected payload for {external_id}") from exc

        if payload.response != "True":
            message = payload.error or "no data returned"
            if message.strip().lower() in NOT_FOUND_ERRORS:
                return MetadataResult(ProviderOutcome.NO_MATCH, error=message, credits=1)
            return MetadataResult(ProviderOutcome.FAILED, error=message, credits=1)

        if response.status_code >= 400:
            return MetadataResult(
                ProviderOutcome.FAILED, error=describe_http_failure(response), credits=1
            )

        return MetadataResult(ProviderOutcome.FOUND, metadata=_to_metadata(payload), credits=1)
