from http import HTTPStatus
from typing import Any

import httpx

from georeg.clients.base import BaseNetworkLookupClient, approximate_coordinates
from georeg.errors import LookupQuotaExceededError, NetworkLookupError
from georeg.models.common import NetworkEstimate, NetworkInfo, PlaceInfo


class IpApiCom(BaseNetworkLookupClient):
    """Client for the http://ip-api.com JSON API.

    Without an explicit IP the endpoint answers for the address the request
    came from, which is this server, not the device.
    """

    def __init__(self, base_url: str = "http://ip-api.com", timeout_seconds: float = 5.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds

    async def lookup_ip(self, ip: str) -> NetworkEstimate:
        """Look up place and network information for a specific IP."""
        url = f"{self._base_url}/json/{ip}"
        return await self._request(url)

    async def lookup_client_ip(self) -> NetworkEstimate:
        """Look up place and network information for the calling client IP."""
        url = f"{self._base_url}/json/"
        return await self._request(url)

    async def _request(self, url: str) -> NetworkEstimate:
        """Perform the HTTP request and normalize the response.

        ip-api.com answers with a `status` field that is either "success" or
        "fail" (with a `message`), usually with HTTP 200 in both cases.
        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                response = await client.get(url)
        except httpx.RequestError as exc:
            raise NetworkLookupError(f"Request to network location provider failed: {repr(exc)}") from exc

        self._handle_http_errors(response)

        data = self._parse_json(response)
        self._handle_provider_status(data)

        return self._normalize_payload(data)

    def _handle_http_errors(self, response: httpx.Response) -> None:
        """Map HTTP status codes from the provider to domain-specific errors."""
        status_code = response.status_code

        if status_code == HTTPStatus.TOO_MANY_REQUESTS:
            raise LookupQuotaExceededError("Network location provider rate limit exceeded (HTTP 429).")

        if status_code >= HTTPStatus.BAD_REQUEST:
            raise NetworkLookupError(f"Network location provider returned HTTP {status_code}: {response.text}")

    def _handle_provider_status(self, data: dict[str, Any]) -> None:
        """Normalize ip-api.com status/message into domain exceptions."""
        status_value = str(data.get("status") or "").lower()

        if status_value == "success":
            return

        message = str(data.get("message") or "Unknown error from ip-api.com")
        lower_msg = message.lower()

        if "quota" in lower_msg or "limit" in lower_msg:
            raise LookupQuotaExceededError(f"Network location provider quota exceeded: {message}")

        # "private range" / "reserved range" when the caller sits behind a private network.
        raise NetworkLookupError(message)

    @staticmethod
    def _parse_json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkLookupError(f"Failed to decode network location response as JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise NetworkLookupError(f"Unexpected network location response: {type(data).__name__}")
        return data

    @staticmethod
    def _normalize_payload(data: dict[str, Any]) -> NetworkEstimate:
        """Map ip-api.com's response into a NetworkEstimate."""
        region = data.get("regionName") or data.get("region")
        country = data.get("country") or data.get("countryCode")

        return NetworkEstimate(
            place=PlaceInfo(
                city=data.get("city"),
                region=region,
                country=country,
                timezone=data.get("timezone"),
            ),
            network=NetworkInfo(
                public_address=data.get("query"),
                isp=data.get("isp"),
                organization=data.get("org"),
                country=country,
                region=region,
                timezone=data.get("timezone"),
            ),
            approximate_coordinates=approximate_coordinates(data.get("lat"), data.get("lon")),
        )
