import pytest

from georeg.location.merge import LocationSource, RecordMerger
from georeg.models.common import UNKNOWN, Coordinates, NetworkEstimate, NetworkInfo, PlaceInfo
from tests.common import acme_estimate

SF = Coordinates(latitude=37.77, longitude=-122.42, accuracy_meters=10)


def test_precise_place_overrides_network_place() -> None:
    merger = RecordMerger()
    merger.apply_network(acme_estimate(city="Oakland"))

    merger.apply_coordinates(SF)
    merger.apply_place(LocationSource.precise, PlaceInfo(city="San Francisco", country="United States"))

    record = merger.record
    assert record.precise is True
    assert record.place.city == "San Francisco"
    assert merger.writer_of("place.city") is LocationSource.precise
    # Nominatim has no timezone; the network value stays.
    assert record.place.timezone == "America/Los_Angeles"
    assert merger.writer_of("place.timezone") is LocationSource.network


def test_network_cannot_overwrite_precise_place() -> None:
    merger = RecordMerger()
    merger.apply_coordinates(SF)
    merger.apply_place(LocationSource.precise, PlaceInfo(city="San Francisco"))

    changed = merger.apply_network(acme_estimate(city="Oakland"))

    assert merger.record.place.city == "San Francisco"
    assert "place.city" not in changed
    assert merger.record.network.isp == "Acme"
    assert merger.record.coordinates == SF


def test_unknown_never_overwrites_known_value() -> None:
    merger = RecordMerger()
    merger.apply_network(acme_estimate())

    changed = merger.apply_network(NetworkEstimate(network=NetworkInfo(public_address="198.51.100.1")))

    assert changed == ["network.public_address"]
    assert merger.record.network.isp == "Acme"
    assert merger.record.place.city == "Oakland"


def test_merge_is_idempotent() -> None:
    merger = RecordMerger()
    estimate = acme_estimate()
    estimate.approximate_coordinates = Coordinates(latitude=37.8, longitude=-122.27)

    first = merger.apply_network(estimate)
    before = merger.record.model_copy(deep=True)
    second = merger.apply_network(estimate)

    assert first
    assert second == []
    assert merger.record == before


def test_network_coordinates_never_make_record_precise() -> None:
    merger = RecordMerger()
    estimate = NetworkEstimate(approximate_coordinates=Coordinates(latitude=37.8, longitude=-122.27))

    merger.apply_network(estimate)

    assert merger.record.precise is False
    assert merger.record.coordinates is None
    assert merger.record.approximate_coordinates == estimate.approximate_coordinates
    assert merger.record.current_point == [0.0, 0.0]


def test_custom_precedence_lets_network_win() -> None:
    merger = RecordMerger(precedence=(LocationSource.network, LocationSource.precise))
    merger.apply_network(acme_estimate(city="Oakland"))

    merger.apply_place(LocationSource.precise, PlaceInfo(city="San Francisco"))

    assert merger.record.place.city == "Oakland"


@pytest.mark.parametrize(
    "precedence",
    [
        (LocationSource.precise,),
        (LocationSource.precise, LocationSource.precise),
        (),
    ],
)
def test_precedence_must_rank_every_source_once(precedence: tuple[LocationSource, ...]) -> None:
    with pytest.raises(ValueError):
        RecordMerger(precedence=precedence)


def test_sentinel_is_rejected_as_precise_fix() -> None:
    merger = RecordMerger()

    with pytest.raises(ValueError):
        merger.apply_coordinates(Coordinates(latitude=0, longitude=0))

    assert merger.record.precise is False
    assert merger.record.place.city == UNKNOWN
