from georeg.clients.base import BaseNetworkLookupClient
from georeg.clients.ip_api_co_client import IpApiCo
from georeg.clients.ip_api_com_client import IpApiCom
from georeg.clients.nominatim_client import NominatimClient
from georeg.clients.registration_client import RegistrationClient
from georeg.settings import Provider, Settings


class NetworkProviderFactory:
    """Factory for network location provider clients.

    Given a Provider enum, returns a concrete client configured from settings.
    """

    PROVIDERS_MAP: dict[Provider, type[BaseNetworkLookupClient]] = {
        Provider.ip_api_com: IpApiCom,
        Provider.ipapi_co: IpApiCo,
    }

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def __call__(self, provider: Provider | None = None) -> BaseNetworkLookupClient:
        provider = provider or self._settings.network_provider
        client_cls = self.PROVIDERS_MAP[provider]
        base_url = {
            Provider.ip_api_com: self._settings.ip_api_com_base_url,
            Provider.ipapi_co: self._settings.ipapi_co_base_url,
        }[provider]
        return client_cls(base_url=base_url, timeout_seconds=self._settings.lookup_timeout_seconds)


def build_reverse_geocode_client(settings: Settings) -> NominatimClient:
    return NominatimClient(
        base_url=settings.nominatim_base_url,
        user_agent=settings.nominatim_user_agent,
        timeout_seconds=settings.lookup_timeout_seconds,
    )


def build_registration_client(settings: Settings) -> RegistrationClient:
    return RegistrationClient(
        base_url=settings.registration_base_url,
        path=settings.registration_path,
        timeout_seconds=settings.registration_timeout_seconds,
    )
