import asyncio
import contextlib

from georeg.factory import NetworkProviderFactory, build_registration_client, build_reverse_geocode_client
from georeg.location.aggregator import AggregatorConfig, LocationAggregator, LocationResult
from georeg.location.capability import ReportedPositionCapability
from georeg.location.device import profile_device
from georeg.location.network import NetworkLocationEstimator
from georeg.location.precise import PreciseLocationProvider
from georeg.location.reverse_geocode import ReverseGeocodeResolver
from georeg.logger import logger
from georeg.models.common import DeviceInfo, RegistrationForm, SubmissionResult
from georeg.models.request_models import PositionReport
from georeg.registration.submitter import RedirectHandoff, RegistrationSubmitter
from georeg.settings import Settings


class RegistrationSession:
    """One user's location resolution plus registration.

    The service keeps a single session per process. The device drives it:
    it starts a resolution, reports its position reading (or the error its
    platform gave), and finally submits the registration form.
    """

    def __init__(
        self,
        capability: ReportedPositionCapability,
        aggregator: LocationAggregator,
        submitter: RegistrationSubmitter,
        handoff: RedirectHandoff,
    ) -> None:
        self.capability = capability
        self.aggregator = aggregator
        self.submitter = submitter
        self.handoff = handoff
        self.device = DeviceInfo()
        self._task: asyncio.Task[LocationResult] | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "RegistrationSession":
        capability = ReportedPositionCapability()
        aggregator = LocationAggregator(
            precise=PreciseLocationProvider(capability),
            geocoder=ReverseGeocodeResolver(build_reverse_geocode_client(settings)),
            network=NetworkLocationEstimator(NetworkProviderFactory(settings)()),
            config=AggregatorConfig.from_settings(settings),
        )
        handoff = RedirectHandoff(settings.post_registration_url)
        submitter = RegistrationSubmitter(build_registration_client(settings), on_registered=handoff)
        return cls(capability, aggregator, submitter, handoff)

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(
        self,
        user_agent: str | None,
        platform: str | None = None,
        client_ip: str | None = None,
    ) -> LocationResult:
        """Profile the device and start a fresh resolution in the background.

        `client_ip` is the device's address, used for the network estimate.
        """
        await self._cancel_running()
        self.device = profile_device(user_agent, platform)
        logger.info(
            "Starting location session "
            f"os={self.device.os} browser={self.device.browser_family} mobile={self.device.is_mobile} "
            f"client_ip={client_ip}"
        )
        self._task = asyncio.create_task(self.aggregator.resolve(client_ip))
        # Let the resolution run up to its first suspension point.
        await asyncio.sleep(0)
        return self.aggregator.result()

    async def retry(self) -> LocationResult:
        """Start a user-initiated precise retry in the background."""
        if self.busy:
            return self.aggregator.result()
        self._task = asyncio.create_task(self.aggregator.retry_precise())
        await asyncio.sleep(0)
        return self.aggregator.result()

    def report_position(self, report: PositionReport) -> bool:
        return self.capability.report(report)

    async def wait(self, timeout_seconds: float) -> LocationResult:
        """Current result, waiting up to `timeout_seconds` for it to settle."""
        try:
            return await asyncio.wait_for(self.aggregator.wait_settled(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            return self.aggregator.result()

    async def register(self, form: RegistrationForm) -> SubmissionResult:
        return await self.submitter.submit(form, self.aggregator.result(), self.device)

    async def _cancel_running(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        logger.info("Cancelling running location resolution for a new one")
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
