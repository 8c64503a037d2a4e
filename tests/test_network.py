import pytest

from georeg.errors import NetworkLookupError
from georeg.location.network import NetworkLocationEstimator, routable_address
from tests.common import StubNetworkClient, acme_estimate


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("198.51.100.9", "198.51.100.9"),
        (" 8.8.8.8 ", "8.8.8.8"),
        ("2001:4860:4860::8888", "2001:4860:4860::8888"),
        ("10.1.2.3", None),
        ("172.20.0.5", None),
        ("192.168.1.20", None),
        ("100.64.0.1", None),
        ("127.0.0.1", None),
        ("169.254.10.1", None),
        ("0.0.0.0", None),
        ("::1", None),
        ("fd00::1", None),
        ("fe80::1", None),
        ("testclient", None),
        ("", None),
        (None, None),
    ],
)
def test_routable_address(value: str | None, expected: str | None) -> None:
    assert routable_address(value) == expected


@pytest.mark.asyncio
async def test_estimator_looks_up_routable_caller() -> None:
    client = StubNetworkClient(acme_estimate())

    estimate = await NetworkLocationEstimator(client).resolve("203.0.113.7")

    assert client.ips == ["203.0.113.7"]
    assert estimate.network.isp == "Acme"


@pytest.mark.asyncio
@pytest.mark.parametrize("client_ip", [None, "10.0.0.8", "not-an-ip"])
async def test_estimator_falls_back_to_request_origin(client_ip: str | None) -> None:
    client = StubNetworkClient(acme_estimate())

    await NetworkLocationEstimator(client).resolve(client_ip)

    assert client.ips == [None]


@pytest.mark.asyncio
async def test_estimator_propagates_lookup_errors() -> None:
    client = StubNetworkClient(error=NetworkLookupError("reserved range"))

    with pytest.raises(NetworkLookupError, match="reserved range"):
        await NetworkLocationEstimator(client).resolve("198.51.100.9")
