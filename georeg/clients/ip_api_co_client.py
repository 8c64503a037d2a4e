from http import HTTPStatus
from typing import Any

import httpx

from georeg.clients.base import BaseNetworkLookupClient, approximate_coordinates
from georeg.errors import LookupQuotaExceededError, NetworkLookupError
from georeg.models.common import NetworkEstimate, NetworkInfo, PlaceInfo


class IpApiCo(BaseNetworkLookupClient):
    """Client for the https://ipapi.co/ IP geolocation API."""

    def __init__(self, base_url: str = "https://ipapi.co", timeout_seconds: float = 5.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds

    async def lookup_ip(self, ip: str) -> NetworkEstimate:
        """Look up place and network information for a specific IP."""
        url = f"{self._base_url}/{ip}/json/"
        return await self._request(url)

    async def lookup_client_ip(self) -> NetworkEstimate:
        """Look up place and network information for the calling client IP."""
        url = f"{self._base_url}/json/"
        return await self._request(url)

    async def _request(self, url: str) -> NetworkEstimate:
        """Perform the HTTP request and normalize the response.

        The ipapi.co API returns a JSON payload that may contain an "error" flag
        even when using HTTP 200. We normalize that into typed exceptions and
        a stable response shape, following the documented error semantics:
        https://ipapi.co/api/#specific-location-field6
        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                response = await client.get(url)
        except httpx.RequestError as exc:
            raise NetworkLookupError(f"Request to network location provider failed: {repr(exc)}") from exc

        self._handle_http_errors(response)

        data = self._parse_json(response)
        self._handle_provider_error(data)

        return self._normalize_payload(data)

    def _handle_http_errors(self, response: httpx.Response) -> None:
        """Map HTTP status codes from the provider to domain-specific errors."""
        status_code = response.status_code

        if status_code == HTTPStatus.FORBIDDEN:
            raise NetworkLookupError("Authentication with network location provider failed (HTTP 403).")
        if status_code == HTTPStatus.TOO_MANY_REQUESTS:
            raise LookupQuotaExceededError("Network location provider rate limit or quota exceeded (HTTP 429).")
        if status_code >= HTTPStatus.BAD_REQUEST:
            raise NetworkLookupError(f"Network location provider returned HTTP {status_code}: {response.text}")

    def _handle_provider_error(self, data: dict[str, Any]) -> None:
        """Normalize provider-specific error payloads into domain exceptions.

        Examples:
            { "error": true, "reason": "Reserved IP Address", "ip": "127.0.0.1", "reserved": true }
            { "error": true, "reason": "RateLimited", "message": "..." }
            { "error": true, "reason": "Quota exceeded", "message": "..." }
        """
        if not data.get("error"):
            return

        reason = str(data.get("reason") or data.get("message") or "Unknown error from ipapi.co")
        lower_reason = reason.lower()

        if "ratelimited" in lower_reason or "quota" in lower_reason:
            raise LookupQuotaExceededError(f"Network location provider rate limit or quota exceeded: {reason}")

        raise NetworkLookupError(reason)

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
        """Map ipapi.co's response into a NetworkEstimate.

        ipapi.co exposes organisation/ISP information only via the "org" field,
        so it fills both the ISP and the organization.
        """
        country = data.get("country_name") or data.get("country")

        return NetworkEstimate(
            place=PlaceInfo(
                city=data.get("city"),
                region=data.get("region"),
                country=country,
                timezone=data.get("timezone"),
            ),
            network=NetworkInfo(
                public_address=data.get("ip"),
                isp=data.get("org"),
                organization=data.get("org"),
                country=country,
                region=data.get("region"),
                timezone=data.get("timezone"),
            ),
            approximate_coordinates=approximate_coordinates(data.get("latitude"), data.get("longitude")),
        )
