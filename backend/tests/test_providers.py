"""Tests for the provider clients using httpx mock transports."""
from __future__ import annotations

from datetime import datetime
from typing import Callable

import httpx
import pytest

from backend.pipeline.errors import ProviderConfigError, ProviderResponseError
from backend.pipeline.providers import (
    OMDB_ENDPOINT,
    WATCHMODE_ENDPOINT,
    AvailabilityProviderClient,
    MetadataProviderClient,
    ProviderConfig,
    ProviderOutcome,
)
from backend.pipeline.records import OfferType

Handler = Callable[[httpx.Request], httpx.Response]


class Recorder:
    """Collects requests and sleep calls in the order they happen."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.events: list[str] = []
        self.requests: list[httpx.Request] = []

    def sleep(self, seconds: float) -> None:
        self.events.append(f"sleep:{seconds}")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.events.append(f"request:{request.url.path}")
        self.requests.append(request)
        return self.handler(request)


def _omdb(recorder: Recorder, *, api_key: str | None = "omdb-key") -> MetadataProviderClient:
    config = ProviderConfig(name="OMDb", api_key=api_key, base_url=OMDB_ENDPOINT, delay_seconds=0.1)
    return MetadataProviderClient(config, transport=httpx.MockTransport(recorder), sleep=recorder.sleep)


def _watchmode(recorder: Recorder) -> AvailabilityProviderClient:
    config = ProviderConfig(
        name="Watchmode", api_key="wm-key", base_url=WATCHMODE_ENDPOINT, delay_seconds=0.5, region="US"
    )
    return AvailabilityProviderClient(
        config,
        transport=httpx.MockTransport(recorder),
        sleep=recorder.sleep,
        clock=lambda: datetime(2026, 3, 1, 12, 0, 0),
    )


OMDB_FOUND = {
    "Response": "True",
    "Title": "The Thing",
    "Year": "1982",
    "Rated": "R",
    "Runtime": "109 min",
    "Genre": "Horror, Mystery, Sci-Fi",
    "Director": "John Carpenter",
    "Country": "United States, Canada",
    "Plot": "A research team in Antarctica is hunted by a shape-shifting alien.",
    "Poster": "https://m.media-amazon.com/images/thing.jpg",
    "imdbRating": "8.2",
    "Awards": "3 nominations",
    "Ratings": [{"Source": "Internet Movie Database", "Value": "8.2/10"}],
}


def test_metadata_client_requires_api_key() -> None:
    with pytest.raises(ProviderConfigError):
        _omdb(Recorder(lambda request: httpx.Response(200, json={})), api_key=None)


def test_metadata_found_is_normalized() -> None:
    recorder = Recorder(lambda request: httpx.Response(200, json=OMDB_FOUND))

    with _omdb(recorder) as client:
        result = client.fetch_metadata("tt0084787")

    assert result.outcome is ProviderOutcome.FOUND
    assert result.credits == 1
    metadata = result.metadata
    assert metadata.poster_url == "https://m.media-amazon.com/images/thing.jpg"
    assert metadata.critic_rating == pytest.approx(8.2)
    assert metadata.content_rating == "R"
    assert metadata.runtime_minutes == 109
    assert metadata.director_name == "John Carpenter"
    assert metadata.countries == ["United States", "Canada"]
    assert metadata.genres == ["horror", "mystery", "sci-fi"]

    params = recorder.requests[0].url.params
    assert params["i"] == "tt0084787"
    assert params["apikey"] == "omdb-key"
    assert params["plot"] == "full"
    assert recorder.events == ["sleep:0.1", "request:/"]


def test_metadata_placeholder_values_are_absent() -> None:
    payload = dict(OMDB_FOUND, Poster="N/A", imdbRating="N/A", Rated="N/A", Runtime="N/A")
    recorder = Recorder(lambda request: httpx.Response(200, json=payload))

    result = _omdb(recorder).fetch_metadata("tt0084787")

    assert result.outcome is ProviderOutcome.FOUND
    assert result.metadata.poster_url is None
    assert result.metadata.critic_rating is None
    assert result.metadata.content_rating is None
    assert result.metadata.runtime_minutes is None


def test_metadata_not_found_is_a_no_match() -> None:
    recorder = Recorder(
        lambda request: httpx.Response(200, json={"Response": "False", "Error": "Incorrect IMDb ID."})
    )

    result = _omdb(recorder).fetch_metadata("tt9999999")

    assert result.outcome is ProviderOutcome.NO_MATCH
    assert result.credits == 1


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"Response": "False", "Error": "Invalid API key!"}),
        httpx.Response(503, text="Service Unavailable"),
        httpx.Response(429, text="Too Many Requests"),
    ],
)
def test_metadata_provider_errors_are_failures(response: httpx.Response) -> None:
    recorder = Recorder(lambda request: response)

    result = _omdb(recorder).fetch_metadata("tt0084787")

    assert result.outcome is ProviderOutcome.FAILED
    assert result.error


def test_metadata_network_error_is_a_failure() -> None:
    def _raise(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = _omdb(Recorder(_raise)).fetch_metadata("tt0084787")

    assert result.outcome is ProviderOutcome.FAILED
    assert "connection refused" in result.error


def test_metadata_unparseable_body_raises() -> None:
    recorder = Recorder(lambda request: httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(ProviderResponseError):
        _omdb(recorder).fetch_metadata("tt0084787")


def _watchmode_handler(search: dict, sources: object, *, sources_status: int = 200) -> Handler:
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/search/"):
            return httpx.Response(200, json=search)
        return httpx.Response(sources_status, json=sources)

    return _handler


def test_availability_search_miss_costs_one_credit() -> None:
    recorder = Recorder(_watchmode_handler({"title_results": []}, []))

    result = _watchmode(recorder).fetch_availability("tt0084787")

    assert result.outcome is ProviderOutcome.NO_MATCH
    assert result.credits == 1
    assert result.provider_title_id is None
    assert len(recorder.requests) == 1
    params = recorder.requests[0].url.params
    assert params["search_field"] == "imdb_id"
    assert params["search_value"] == "tt0084787"
    assert params["apiKey"] == "wm-key"


def test_availability_found_maps_and_dedupes_sources() -> None:
    sources = [
        {"source_id": 203, "name": "Netflix", "type": "sub", "region": "US", "web_url": "https://netflix.com/t", "format": "HD"},
        {"source_id": 203, "name": "Netflix", "type": "sub", "region": "US", "web_url": "https://netflix.com/t", "format": "4K"},
        {"source_id": 387, "name": "Max", "type": "addon", "region": "US", "ios_url": "max://t"},
        {"source_id": 24, "name": "Amazon", "type": "rent", "region": "US", "web_url": "https://amzn/t", "price": 3.99},
        {"source_id": 24, "name": "Amazon", "type": "buy", "region": "US", "web_url": "https://amzn/t", "price": 9.99},
        {"source_id": 73, "name": "Tubi", "type": "free", "region": "GB", "web_url": "https://tubi/t"},
        {"source_id": 99, "name": "NoLink", "type": "free", "region": "US"},
    ]
    search = {"title_results": [{"id": 1362371, "name": "The Thing", "tmdb_id": 1091, "imdb_id": "tt0084787"}]}
    recorder = Recorder(_watchmode_handler(search, sources))

    result = _watchmode(recorder).fetch_availability("tt0084787")

    assert result.outcome is ProviderOutcome.FOUND
    assert result.credits == AvailabilityProviderClient.CREDITS_PER_LOOKUP
    assert result.provider_title_id == "1362371"
    assert result.tmdb_id == "1091"
    assert [(source.service_name, source.offer_type) for source in result.sources] == [
        ("Netflix", OfferType.SUBSCRIPTION),
        ("Max", OfferType.SUBSCRIPTION),
        ("Amazon", OfferType.RENT),
        ("Amazon", OfferType.BUY),
    ]
    assert result.sources[0].quality == "HD"
    assert result.sources[1].deep_link == "max://t"
    assert result.sources[2].price == pytest.approx(3.99)
    assert all(source.region == "US" for source in result.sources)
    assert result.sources[0].verified_at == datetime(2026, 3, 1, 12, 0, 0)

    assert recorder.requests[1].url.path == "/v1/title/1362371/sources/"
    assert recorder.requests[1].url.params["regions"] == "US"
    assert recorder.events == [
        "sleep:0.5",
        "request:/v1/search/",
        "sleep:0.5",
        "request:/v1/title/1362371/sources/",
    ]


def test_availability_without_sources_is_a_no_match_with_id() -> None:
    search = {"title_results": [{"id": 42, "tmdb_id": None}]}
    recorder = Recorder(_watchmode_handler(search, []))

    result = _watchmode(recorder).fetch_availability("tt0084787")

    assert result.outcome is ProviderOutcome.NO_MATCH
    assert result.provider_title_id == "42"
    assert result.credits == 2


def test_availability_rate_limit_is_a_failure() -> None:
    recorder = Recorder(lambda request: httpx.Response(429, json={"error": "limit"}))

    result = _watchmode(recorder).fetch_availability("tt0084787")

    assert result.outcome is ProviderOutcome.FAILED
    assert result.credits == 1


def test_availability_unparseable_sources_raise() -> None:
    search = {"title_results": [{"id": 42}]}
    recorder = Recorder(_watchmode_handler(search, {"unexpected": True}))

    with pytest.raises(ProviderResponseError):
        _watchmode(recorder).fetch_availability("tt0084787")
