from abc import ABC, abstractmethod
from typing import Any

from georeg.models.common import Coordinates, NetworkEstimate, PlaceInfo


class BaseNetworkLookupClient(ABC):
    """Abstract base for network-origin (IP) location clients.

    Concrete implementations (e.g. ip-api.com, ipapi.co) look up either an
    explicit address or, when none is known, the address the provider sees
    the request coming from, and map the provider-specific response into a
    NetworkEstimate.
    """

    @abstractmethod
    async def lookup_ip(self, ip: str) -> NetworkEstimate:
        """Look up place and network information for an explicit IP address."""
        raise NotImplementedError

    @abstractmethod
    async def lookup_client_ip(self) -> NetworkEstimate:
        """Look up place and network information for the calling client's IP address."""
        raise NotImplementedError


class BaseReverseGeocodeClient(ABC):
    """Abstract base for reverse-geocoding clients."""

    @abstractmethod
    async def reverse(self, latitude: float, longitude: float) -> PlaceInfo:
        """Resolve coordinates into a human-readable place."""
        raise NotImplementedError


def approximate_coordinates(latitude: Any, longitude: Any) -> Coordinates | None:
    """Build coordinates from provider values, which may be strings, numbers or null."""
    if latitude is None or longitude is None:
        return None
    try:
        # For general GPS and mapping, 5-6 decimal places (e.g., 34.052235)
        coordinates = Coordinates(latitude=round(float(latitude), 6), longitude=round(float(longitude), 6))
    except (TypeError, ValueError):
        return None
    return None if coordinates.is_sentinel else coordinates
