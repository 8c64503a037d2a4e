from collections.abc import Callable
from http import HTTPStatus
from typing import Any

import httpx
import pytest

from georeg.clients.ip_api_co_client import IpApiCo
from georeg.errors import LookupQuotaExceededError, NetworkLookupError
from tests.common import FailingAsyncClient, MockAsyncClient, MockResponse


def make_fake_async_client(response: MockResponse) -> Callable[..., MockAsyncClient]:
    """Factory for a fake httpx.AsyncClient returning a fixed response.

    This avoids repeating the same stub definition in every test.
    """

    def _fake_client(*args: Any, **kwargs: Any) -> MockAsyncClient:
        return MockAsyncClient(response)

    return _fake_client


@pytest.mark.asyncio
async def test_lookup_client_ip_success(monkeypatch: pytest.MonkeyPatch) -> None:
    """Happy path: string lat/lon are coerced to float, "org" fills ISP and organization."""
    payload = {
        "ip": "8.8.8.8",
        "country": "US",
        "country_name": "United States",
        "region": "California",
        "city": "Mountain View",
        "latitude": "37.386",
        "longitude": "-122.0838",
        "timezone": "America/Los_Angeles",
        "org": "Google LLC",
    }
    response = MockResponse(status_code=HTTPStatus.OK, payload=payload)

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    result = await IpApiCo().lookup_client_ip()

    assert result.place.city == "Mountain View"
    assert result.place.region == "California"
    assert result.place.country == "United States"
    assert result.network.public_address == "8.8.8.8"
    assert result.network.isp == "Google LLC"
    assert result.network.organization == "Google LLC"
    assert result.network.timezone == "America/Los_Angeles"
    # Use pytest.approx to allow for minor floating-point representation differences.
    assert result.approximate_coordinates is not None
    assert result.approximate_coordinates.latitude == pytest.approx(37.386)
    assert result.approximate_coordinates.longitude == pytest.approx(-122.0838)


@pytest.mark.asyncio
async def test_lookup_client_ip_garbage_coordinates_are_dropped(monkeypatch: pytest.MonkeyPatch) -> None:
    payload = {"ip": "198.51.100.42", "latitude": "n/a", "longitude": 13.405}
    response = MockResponse(status_code=HTTPStatus.OK, payload=payload)

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    result = await IpApiCo().lookup_client_ip()

    assert result.approximate_coordinates is None
    assert result.network.public_address == "198.51.100.42"


@pytest.mark.asyncio
async def test_lookup_client_ip_reserved_ip_error(monkeypatch: pytest.MonkeyPatch) -> None:
    """ipapi.co indicates a reserved/private IP via an error flag in the JSON payload."""
    payload = {"error": True, "reason": "Reserved IP Address", "reserved": True}
    response = MockResponse(status_code=HTTPStatus.OK, payload=payload)

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    with pytest.raises(NetworkLookupError, match="Reserved IP Address"):
        await IpApiCo().lookup_client_ip()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"error": True, "reason": "RateLimited", "message": "Too many requests"},
        {"error": True, "reason": "Quota exceeded", "message": "Daily quota exceeded"},
    ],
)
async def test_lookup_client_ip_json_rate_limit_errors(
    monkeypatch: pytest.MonkeyPatch,
    payload: dict[str, Any],
) -> None:
    response = MockResponse(status_code=HTTPStatus.OK, payload=payload)

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    with pytest.raises(LookupQuotaExceededError):
        await IpApiCo().lookup_client_ip()


@pytest.mark.asyncio
async def test_lookup_client_ip_http_429_raises_quota_error(monkeypatch: pytest.MonkeyPatch) -> None:
    response = MockResponse(status_code=HTTPStatus.TOO_MANY_REQUESTS, payload={}, text="Too Many Requests")

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    with pytest.raises(LookupQuotaExceededError):
        await IpApiCo().lookup_client_ip()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code",
    [
        HTTPStatus.BAD_REQUEST,
        HTTPStatus.FORBIDDEN,
        HTTPStatus.METHOD_NOT_ALLOWED,
        HTTPStatus.INTERNAL_SERVER_ERROR,
    ],
)
async def test_lookup_client_ip_http_error_statuses_raise_network_lookup_error(
    monkeypatch: pytest.MonkeyPatch,
    status_code: HTTPStatus,
) -> None:
    response = MockResponse(status_code=status_code, payload={}, text="Some error")

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    with pytest.raises(NetworkLookupError):
        await IpApiCo().lookup_client_ip()


@pytest.mark.asyncio
async def test_lookup_client_ip_network_failure_raises_network_lookup_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Network failures from httpx.AsyncClient are mapped to NetworkLookupError."""

    monkeypatch.setattr(
        httpx, "AsyncClient", lambda *args, **kwargs: FailingAsyncClient("https://ipapi.co", *args, **kwargs)
    )

    with pytest.raises(NetworkLookupError):
        await IpApiCo().lookup_client_ip()


@pytest.mark.asyncio
async def test_lookup_ip_requests_that_address(monkeypatch: pytest.MonkeyPatch) -> None:
    response = MockResponse(status_code=HTTPStatus.OK, payload={"ip": "2001:db8::1", "city": "Lyon"})
    created: list[MockAsyncClient] = []

    def _fake_client(*args: Any, **kwargs: Any) -> MockAsyncClient:
        client = MockAsyncClient(response, **kwargs)
        created.append(client)
        return client

    monkeypatch.setattr(httpx, "AsyncClient", _fake_client)

    result = await IpApiCo(base_url="https://ipapi.test/").lookup_ip("2001:db8::1")

    assert created[0].calls[0][:2] == ("GET", "https://ipapi.test/2001:db8::1/json/")
    assert result.network.public_address == "2001:db8::1"


@pytest.mark.asyncio
async def test_lookup_client_ip_non_object_body_raises_network_lookup_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    response = MockResponse(status_code=HTTPStatus.OK, payload="Undefined")

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    with pytest.raises(NetworkLookupError, match="str"):
        await IpApiCo().lookup_client_ip()
