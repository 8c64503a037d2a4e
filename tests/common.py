import asyncio
from http import HTTPStatus
from typing import Any

import httpx

from georeg.clients.base import BaseNetworkLookupClient, BaseReverseGeocodeClient
from georeg.clients.registration_client import RegistrationClient
from georeg.location.aggregator import AggregatorConfig, LocationAggregator
from georeg.location.capability import ReportedPositionCapability
from georeg.location.network import NetworkLocationEstimator
from georeg.location.precise import PreciseLocationProvider
from georeg.location.reverse_geocode import ReverseGeocodeResolver
from georeg.models.common import NetworkEstimate, NetworkInfo, PlaceInfo, SubmissionResult


class MockResponse:
    def __init__(self, status_code: int, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.text = text

    def json(self) -> Any:
        return self._payload


class MockAsyncClient:
    """Minimal async context-manager mock for httpx.AsyncClient that records calls."""

    def __init__(self, response: MockResponse, **client_kwargs: Any) -> None:
        self._response = response
        self.client_kwargs = client_kwargs
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    async def __aenter__(self) -> "MockAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str, **kwargs: Any) -> MockResponse:
        self.calls.append(("GET", url, kwargs))
        return self._response

    async def post(self, url: str, **kwargs: Any) -> MockResponse:
        self.calls.append(("POST", url, kwargs))
        return self._response


class FailingAsyncClient:
    """Async client that raises a RequestError on enter to simulate network failure.

    The target URL is provided at construction time, so tests for different providers
    can reuse this implementation with different base URLs.
    """

    def __init__(self, url: str, *args: Any, **kwargs: Any) -> None:
        self._url = url

    async def __aenter__(self) -> "FailingAsyncClient":
        request = httpx.Request("GET", self._url)
        raise httpx.RequestError("Network failure", request=request)

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str, **kwargs: Any) -> MockResponse:
        return MockResponse(status_code=HTTPStatus.OK, payload={})


class StubNetworkClient(BaseNetworkLookupClient):
    """Network lookup double returning a fixed estimate (or raising) after an optional delay."""

    def __init__(
        self,
        estimate: NetworkEstimate | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self._estimate = estimate or NetworkEstimate()
        self._error = error
        self._delay = delay
        self.calls = 0
        # Looked-up addresses; None for a lookup of the request's own origin.
        self.ips: list[str | None] = []

    async def lookup_ip(self, ip: str) -> NetworkEstimate:
        self.ips.append(ip)
        return await self._answer()

    async def lookup_client_ip(self) -> NetworkEstimate:
        self.ips.append(None)
        return await self._answer()

    async def _answer(self) -> NetworkEstimate:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return self._estimate


class StubGeocodeClient(BaseReverseGeocodeClient):
    """Reverse geocoding double returning a fixed place (or raising) after an optional delay."""

    def __init__(self, place: PlaceInfo | None = None, error: Exception | None = None, delay: float = 0.0) -> None:
        self._place = place or PlaceInfo()
        self._error = error
        self._delay = delay
        self.calls: list[tuple[float, float]] = []

    async def reverse(self, latitude: float, longitude: float) -> PlaceInfo:
        self.calls.append((latitude, longitude))
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return self._place


class StubRegistrationClient(RegistrationClient):
    """Registration client double that records request bodies instead of sending them."""

    def __init__(self, result: SubmissionResult | None = None, error: Exception | None = None) -> None:
        super().__init__(base_url="http://registration.test")
        self._result = result or SubmissionResult(status_code=201, body={"id": "user-1"})
        self._error = error
        self.bodies: list[dict[str, Any]] = []

    async def register(self, body: dict[str, Any]) -> SubmissionResult:
        self.bodies.append(body)
        if self._error is not None:
            raise self._error
        return self._result


def acme_estimate(city: str = "Oakland") -> NetworkEstimate:
    return NetworkEstimate(
        place=PlaceInfo(city=city, region="California", country="United States", timezone="America/Los_Angeles"),
        network=NetworkInfo(
            public_address="203.0.113.7",
            isp="Acme",
            organization="Acme Networks",
            country="United States",
            region="California",
            timezone="America/Los_Angeles",
        ),
    )


def make_aggregator(
    capability: ReportedPositionCapability,
    geocode_client: BaseReverseGeocodeClient,
    network_client: BaseNetworkLookupClient,
    **config: Any,
) -> LocationAggregator:
    return LocationAggregator(
        precise=PreciseLocationProvider(capability),
        geocoder=ReverseGeocodeResolver(geocode_client),
        network=NetworkLocationEstimator(network_client),
        config=AggregatorConfig(**config),
    )
