from enum import Enum

from pydantic import BaseModel

from georeg.models.common import Coordinates, LocationRecord, NetworkEstimate, PlaceInfo, is_unknown


class LocationSource(str, Enum):
    """Sources that write into a LocationRecord."""

    precise = "precise"
    network = "network"


DEFAULT_PRECEDENCE: tuple[LocationSource, ...] = (LocationSource.precise, LocationSource.network)

_PLACE_FIELDS = ("city", "region", "country", "timezone")
_NETWORK_FIELDS = ("public_address", "isp", "organization", "country", "region", "timezone")


class RecordMerger:
    """Merges source results into one LocationRecord, in arrival order.

    Every field remembers which source wrote it last. A source may overwrite a
    field written by a source of the same or lower precision, never one of
    higher precision, and "Unknown" values never overwrite anything. Applying
    the same result twice therefore leaves the record unchanged.
    """

    def __init__(
        self,
        precedence: tuple[LocationSource, ...] = DEFAULT_PRECEDENCE,
        record: LocationRecord | None = None,
    ) -> None:
        if len(set(precedence)) != len(precedence) or set(precedence) != set(LocationSource):
            raise ValueError(f"precedence must rank every source exactly once, got {precedence}")
        self._rank = {source: index for index, source in enumerate(precedence)}
        self._writers: dict[str, LocationSource] = {}
        self.record = record or LocationRecord.empty()

    def writer_of(self, key: str) -> LocationSource | None:
        """Which source last wrote `key`, e.g. "coordinates" or "place.city"."""
        return self._writers.get(key)

    def apply_coordinates(self, coordinates: Coordinates) -> bool:
        """Merge a precise fix; sets `precise` independently of any later place lookup."""
        if coordinates.is_sentinel:
            raise ValueError("the (0, 0) sentinel cannot be merged as a precise fix")
        if not self._may_write("coordinates", LocationSource.precise):
            return False
        self.record.coordinates = coordinates
        self.record.precise = True
        self._writers["coordinates"] = LocationSource.precise
        return True

    def apply_place(self, source: LocationSource, place: PlaceInfo) -> list[str]:
        return self._apply_fields(source, "place", self.record.place, place, _PLACE_FIELDS)

    def apply_network(self, estimate: NetworkEstimate) -> list[str]:
        source = LocationSource.network
        changed = self.apply_place(source, estimate.place)
        changed += self._apply_fields(source, "network", self.record.network, estimate.network, _NETWORK_FIELDS)

        approximate = estimate.approximate_coordinates
        if approximate is not None and self._may_write("approximate_coordinates", source):
            if self.record.approximate_coordinates != approximate:
                changed.append("approximate_coordinates")
            self.record.approximate_coordinates = approximate
            self._writers["approximate_coordinates"] = source
        return changed

    def _apply_fields(
        self,
        source: LocationSource,
        group: str,
        target: BaseModel,
        incoming: BaseModel,
        fields: tuple[str, ...],
    ) -> list[str]:
        changed: list[str] = []
        for field in fields:
            value = getattr(incoming, field)
            key = f"{group}.{field}"
            if is_unknown(value) or not self._may_write(key, source):
                continue
            if getattr(target, field) != value:
                changed.append(key)
            setattr(target, field, value)
            self._writers[key] = source
        return changed

    def _may_write(self, key: str, source: LocationSource) -> bool:
        writer = self._writers.get(key)
        return writer is None or self._rank[source] <= self._rank[writer]
