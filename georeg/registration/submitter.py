from collections.abc import Callable

from georeg.clients.registration_client import RegistrationClient
from georeg.errors import LocationNotSettledError, NoLocationAvailableError, SubmissionError
from georeg.location.aggregator import LocationResult
from georeg.logger import logger
from georeg.models.common import (
    DeviceInfo,
    RegistrationForm,
    RegistrationPayload,
    SourceLabel,
    SubmissionResult,
)

PostRegistrationHandoff = Callable[[SubmissionResult], None]


def build_payload(form: RegistrationForm, location: LocationResult, device: DeviceInfo) -> RegistrationPayload:
    """Freeze the settled location into a payload, or refuse to build one."""
    if not location.settled:
        raise LocationNotSettledError("Location detection is still in progress.")
    if location.source_label is SourceLabel.none:
        raise NoLocationAvailableError("No location data available.")

    return RegistrationPayload(
        form=form,
        location_record=location.record.snapshot(),
        device_info=device,
        source_label=location.source_label,
    )


class RegistrationSubmitter:
    """Assembles the registration payload and sends it to the backend.

    The post-registration hand-off runs once, after the first 2xx response;
    later successful submissions do not trigger it again.
    """

    def __init__(self, client: RegistrationClient, on_registered: PostRegistrationHandoff | None = None) -> None:
        self._client = client
        self._on_registered = on_registered
        self._handed_off = False

    @property
    def handed_off(self) -> bool:
        return self._handed_off

    async def submit(
        self,
        form: RegistrationForm,
        location: LocationResult,
        device: DeviceInfo,
    ) -> SubmissionResult:
        """Submit the registration; raises a SubmissionError subclass on failure."""
        try:
            payload = build_payload(form, location, device)
        except SubmissionError as exc:
            logger.warning(
                f"Registration rejected locally username={form.username} "
                f"status={location.status.value} error={exc.code}"
            )
            raise

        logger.info(
            "Submitting registration "
            f"url={self._client.url} username={form.username} source={payload.source_label.value}"
        )
        try:
            result = await self._client.register(payload.to_request_body())
        except SubmissionError as exc:
            logger.error(f"Registration failed username={form.username} error={exc.code} message={exc}")
            raise

        logger.info(f"Registration succeeded username={form.username} status_code={result.status_code}")
        if self._on_registered is not None and not self._handed_off:
            self._handed_off = True
            self._on_registered(result)
        return result


class RedirectHandoff:
    """Post-registration destination: records where the client goes next."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.target: str | None = None

    def __call__(self, result: SubmissionResult) -> None:
        logger.info(f"Handing off to post-registration destination url={self.url}")
        self.target = self.url
