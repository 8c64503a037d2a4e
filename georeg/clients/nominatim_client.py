from http import HTTPStatus
from typing import Any

import httpx

from georeg.clients.base import BaseReverseGeocodeClient
from georeg.errors import LookupQuotaExceededError, NetworkLookupError
from georeg.models.common import PlaceInfo

# Nominatim names the settlement differently depending on its size.
_CITY_KEYS = ("city", "town", "village", "hamlet", "municipality", "suburb")
_REGION_KEYS = ("state", "region", "province", "county")


class NominatimClient(BaseReverseGeocodeClient):
    """Client for the OpenStreetMap Nominatim reverse-geocoding API.

    The usage policy requires an identifying User-Agent on every request.
    Nominatim does not report a timezone, so `PlaceInfo.timezone` stays
    "Unknown" and the aggregator keeps whatever a network lookup provided.
    """

    def __init__(
        self,
        base_url: str = "https://nominatim.openstreetmap.org",
        user_agent: str = "georeg/0.1",
        timeout_seconds: float = 5.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._user_agent = user_agent
        self._timeout_seconds = timeout_seconds

    async def reverse(self, latitude: float, longitude: float) -> PlaceInfo:
        url = f"{self._base_url}/reverse"
        params = {
            "format": "jsonv2",
            "lat": f"{latitude:.6f}",
            "lon": f"{longitude:.6f}",
            "zoom": "10",
            "addressdetails": "1",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                headers={"User-Agent": self._user_agent},
            ) as client:
                response = await client.get(url, params=params)
        except httpx.RequestError as exc:
            raise NetworkLookupError(f"Request to reverse geocoder failed: {repr(exc)}") from exc

        if response.status_code == HTTPStatus.TOO_MANY_REQUESTS:
            raise LookupQuotaExceededError("Reverse geocoder rate limit exceeded (HTTP 429).")
        if response.status_code >= HTTPStatus.BAD_REQUEST:
            raise NetworkLookupError(f"Reverse geocoder returned HTTP {response.status_code}: {response.text}")

        data = self._parse_json(response)

        # e.g. {"error": "Unable to geocode"} for points in the open sea.
        if data.get("error"):
            raise NetworkLookupError(str(data["error"]))

        return self._normalize_payload(data)

    @staticmethod
    def _parse_json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkLookupError(f"Failed to decode reverse geocoder response as JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise NetworkLookupError(f"Unexpected reverse geocoder response: {type(data).__name__}")
        return data

    @staticmethod
    def _normalize_payload(data: dict[str, Any]) -> PlaceInfo:
        address = data.get("address") or {}
        city = next((address[key] for key in _CITY_KEYS if address.get(key)), None)
        region = next((address[key] for key in _REGION_KEYS if address.get(key)), None)
        country = address.get("country") or str(address.get("country_code") or "").upper() or None

        return PlaceInfo(city=city, region=region, country=country)
