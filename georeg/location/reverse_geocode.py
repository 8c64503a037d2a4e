from georeg.clients.base import BaseReverseGeocodeClient
from georeg.errors import NetworkLookupError
from georeg.logger import logger
from georeg.models.common import Coordinates, PlaceInfo


class ReverseGeocodeResolver:
    """Turns coordinates into a PlaceInfo via an external lookup.

    Failures surface as NetworkLookupError; the aggregator treats them as
    non-fatal and keeps the coordinates.
    """

    def __init__(self, client: BaseReverseGeocodeClient) -> None:
        self._client = client

    async def resolve(self, coordinates: Coordinates) -> PlaceInfo:
        logger.info(
            "Reverse geocoding coordinates "
            f"latitude={coordinates.latitude:.4f} longitude={coordinates.longitude:.4f}"
        )
        try:
            place = await self._client.reverse(coordinates.latitude, coordinates.longitude)
        except NetworkLookupError as exc:
            logger.warning(f"Reverse geocoding failed error={exc}")
            raise

        logger.info(f"Reverse geocoded city={place.city} region={place.region} country={place.country}")
        return place
