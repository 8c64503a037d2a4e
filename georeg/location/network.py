from ipaddress import ip_address, ip_network

from georeg.clients.base import BaseNetworkLookupClient
from georeg.errors import NetworkLookupError
from georeg.logger import logger
from georeg.models.common import NetworkEstimate

# Addresses a lookup provider can say nothing useful about.
_LOCAL_NETWORKS = tuple(
    ip_network(network)
    for network in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16", "100.64.0.0/10", "fc00::/7")
)


def routable_address(value: str | None) -> str | None:
    """Normalized IP literal, or None for blank, malformed or local addresses."""
    if value is None or not value.strip():
        return None
    try:
        address = ip_address(value.strip())
    except ValueError:
        return None

    if address.is_loopback or address.is_link_local or address.is_unspecified or address.is_multicast:
        return None
    if any(address.version == network.version and address in network for network in _LOCAL_NETWORKS):
        return None
    return str(address)


class NetworkLocationEstimator:
    """Approximate place and network metadata from the caller's network origin.

    No permission gate is involved, so the aggregator may start this lookup
    alongside the precise request and throw the result away if it is not needed.
    The caller's address is looked up explicitly; only when it is unknown or
    local does the provider fall back to the address the request came from.
    """

    def __init__(self, client: BaseNetworkLookupClient) -> None:
        self._client = client

    async def resolve(self, client_ip: str | None = None) -> NetworkEstimate:
        provider = type(self._client).__name__
        address = routable_address(client_ip)
        logger.info(f"Estimating location from network origin provider={provider} ip={address or 'auto'}")
        try:
            if address is not None:
                estimate = await self._client.lookup_ip(address)
            else:
                estimate = await self._client.lookup_client_ip()
        except NetworkLookupError as exc:
            logger.warning(f"Network location lookup failed provider={provider} ip={address} error={exc}")
            raise

        logger.info(
            "Network location estimated "
            f"provider={provider} city={estimate.place.city} country={estimate.place.country} "
            f"isp={estimate.network.isp}"
        )
        return estimate
