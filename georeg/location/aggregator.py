import asyncio
from dataclasses import dataclass
from enum import Enum

from georeg.errors import LocationSourceError, PermissionDeniedError
from georeg.location.merge import DEFAULT_PRECEDENCE, LocationSource, RecordMerger
from georeg.location.network import NetworkLocationEstimator
from georeg.location.precise import DEFAULT_TIMEOUT_MS, RETRY_TIMEOUT_MS, PreciseLocationProvider
from georeg.location.reverse_geocode import ReverseGeocodeResolver
from georeg.logger import logger
from georeg.models.common import LocationRecord, LocationStatus, SourceLabel
from georeg.settings import FallbackStrategy, Settings


class AggregatorState(str, Enum):
    idle = "idle"
    resolving = "resolving"
    precise_ready = "precise_ready"
    approximate_ready = "approximate_ready"
    settled = "settled"


@dataclass(frozen=True)
class AggregatorConfig:
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    retry_timeout_ms: int = RETRY_TIMEOUT_MS
    max_age_ms: int = 0
    fallback_strategy: FallbackStrategy = FallbackStrategy.parallel
    precedence_order: tuple[LocationSource, ...] = DEFAULT_PRECEDENCE
    network_grace_ms: int = 1000

    @classmethod
    def from_settings(cls, settings: Settings) -> "AggregatorConfig":
        return cls(
            timeout_ms=settings.precise_timeout_ms,
            retry_timeout_ms=settings.retry_timeout_ms,
            max_age_ms=settings.max_age_ms,
            fallback_strategy=settings.fallback_strategy,
            network_grace_ms=settings.network_grace_ms,
        )


@dataclass(frozen=True)
class LocationResult:
    """What the aggregator hands to its consumers: a copy, never the live record."""

    record: LocationRecord
    state: AggregatorState
    status: LocationStatus
    source_label: SourceLabel
    precise_failure: str | None = None

    @property
    def settled(self) -> bool:
        return self.state is AggregatorState.settled


class LocationAggregator:
    """Runs the location sources and reconciles them into one LocationRecord.

    States: idle -> resolving -> {precise_ready, approximate_ready} -> settled.

    The precise request always runs first. With the parallel strategy the
    network lookup starts at the same time; with the sequential strategy only
    once the precise request has failed. A precise fix triggers reverse
    geocoding. Results are merged as they arrive, each tagged with the
    resolution attempt that produced it; results of an attempt that is no
    longer current are dropped. Source failures are logged and absorbed, so
    `resolve` always returns a settled result.
    """

    def __init__(
        self,
        precise: PreciseLocationProvider,
        geocoder: ReverseGeocodeResolver,
        network: NetworkLocationEstimator,
        config: AggregatorConfig | None = None,
    ) -> None:
        self._precise = precise
        self._geocoder = geocoder
        self._network = network
        self._config = config or AggregatorConfig()

        self._attempt = 0
        self._state = AggregatorState.idle
        self._status = LocationStatus.detecting
        self._merger = RecordMerger(self._config.precedence_order)
        self._network_ok = False
        self._precise_failure: str | None = None
        self._settled = asyncio.Event()

    @property
    def config(self) -> AggregatorConfig:
        return self._config

    @property
    def state(self) -> AggregatorState:
        return self._state

    @property
    def status(self) -> LocationStatus:
        return self._status

    @property
    def record(self) -> LocationRecord:
        """The live record under construction."""
        return self._merger.record

    def result(self) -> LocationResult:
        return LocationResult(
            record=self._merger.record.snapshot(),
            state=self._state,
            status=self._status,
            source_label=self._source_label(),
            precise_failure=self._precise_failure,
        )

    async def wait_settled(self) -> LocationResult:
        await self._settled.wait()
        return self.result()

    async def resolve(self, client_ip: str | None = None) -> LocationResult:
        """Run a full resolution from an empty record and settle.

        `client_ip` is the caller's address as seen by the service; the network
        lookup uses it when it is routable.
        """
        attempt = self._begin_attempt()
        self._merger = RecordMerger(self._config.precedence_order)
        self._network_ok = False
        self._precise_failure = None

        network_task: asyncio.Task[bool] | None = None
        if self._config.fallback_strategy is FallbackStrategy.parallel:
            network_task = asyncio.create_task(self._estimate_network(attempt, client_ip))

        try:
            if await self._resolve_precise(attempt, self._config.timeout_ms):
                await self._finish_network(network_task)
            else:
                if network_task is not None:
                    network_ok = await network_task
                else:
                    network_ok = await self._estimate_network(attempt, client_ip)
                if network_ok and self._is_current(attempt):
                    self._state = AggregatorState.approximate_ready
                    self._status = LocationStatus.approximate
        except Exception:
            logger.exception(f"Unexpected error while resolving location attempt={attempt}")
        finally:
            if network_task is not None and not network_task.done():
                network_task.cancel()

        return self._settle(attempt)

    async def retry_precise(self, timeout_ms: int | None = None) -> LocationResult:
        """User-initiated retry of the precise request, keeping data already merged.

        Does nothing while a resolution is running, once the record is already
        precise, or after a permission denial (not retryable this session).
        """
        if self._state is not AggregatorState.settled:
            logger.info(f"Ignoring precise retry while state={self._state.value}")
            return self.result()
        if self._merger.record.precise:
            return self.result()
        if self._precise_failure == PermissionDeniedError.code:
            logger.info("Skipping precise retry after permission was denied")
            return self.result()

        attempt = self._begin_attempt()
        try:
            await self._resolve_precise(attempt, timeout_ms or self._config.retry_timeout_ms)
        except Exception:
            logger.exception(f"Unexpected error while retrying precise location attempt={attempt}")

        return self._settle(attempt)

    def _begin_attempt(self) -> int:
        self._attempt += 1
        self._state = AggregatorState.resolving
        self._status = LocationStatus.detecting
        self._settled.clear()
        logger.info(f"Location resolution started attempt={self._attempt}")
        return self._attempt

    def _is_current(self, attempt: int) -> bool:
        return attempt == self._attempt

    async def _resolve_precise(self, attempt: int, timeout_ms: int) -> bool:
        try:
            coordinates = await self._precise.resolve(timeout_ms=timeout_ms, max_age_ms=self._config.max_age_ms)
        except LocationSourceError as exc:
            if self._is_current(attempt):
                self._precise_failure = exc.code
            logger.warning(f"Precise location failed, falling back attempt={attempt} error={exc.code}")
            return False

        if not self._is_current(attempt):
            logger.info(f"Discarding stale precise location attempt={attempt} current_attempt={self._attempt}")
            return False

        self._merger.apply_coordinates(coordinates)
        self._precise_failure = None
        self._state = AggregatorState.precise_ready
        self._status = LocationStatus.precise
        logger.info(f"Precise location ready attempt={attempt} accuracy_meters={coordinates.accuracy_meters}")

        try:
            place = await self._geocoder.resolve(coordinates)
        except LocationSourceError:
            # Coordinates stay; the place keeps whatever it already had.
            return True
        except Exception:
            logger.exception(f"Reverse geocoding crashed, keeping coordinates attempt={attempt}")
            return True

        if self._is_current(attempt):
            self._merger.apply_place(LocationSource.precise, place)
        else:
            logger.info(f"Discarding stale reverse geocode attempt={attempt} current_attempt={self._attempt}")
        return True

    async def _estimate_network(self, attempt: int, client_ip: str | None = None) -> bool:
        try:
            estimate = await self._network.resolve(client_ip)
        except LocationSourceError as exc:
            logger.warning(f"Network location unavailable attempt={attempt} error={exc.code}")
            return False

        if not self._is_current(attempt):
            logger.info(f"Discarding stale network estimate attempt={attempt} current_attempt={self._attempt}")
            return False

        changed = self._merger.apply_network(estimate)
        self._network_ok = True
        logger.info(f"Merged network estimate attempt={attempt} changed={changed}")
        return True

    async def _finish_network(self, network_task: "asyncio.Task[bool] | None") -> None:
        """Give a still-running network lookup a short grace period, then drop it."""
        if network_task is None:
            return
        done, _ = await asyncio.wait({network_task}, timeout=self._config.network_grace_ms / 1000)
        if not done:
            network_task.cancel()
            logger.info("Cancelled pending network lookup after precise location settled")
        elif not network_task.cancelled() and network_task.exception() is not None:
            logger.error(f"Network lookup crashed error={network_task.exception()!r}")

    def _source_label(self) -> SourceLabel:
        if self._merger.record.precise:
            return SourceLabel.browser
        if self._network_ok:
            return SourceLabel.ip
        return SourceLabel.none

    def _settle(self, attempt: int) -> LocationResult:
        if not self._is_current(attempt):
            logger.info(f"Not settling superseded attempt={attempt} current_attempt={self._attempt}")
            return self.result()

        if self._merger.record.precise:
            self._status = LocationStatus.precise
        elif self._network_ok:
            self._status = LocationStatus.approximate
        else:
            self._status = LocationStatus.unavailable

        self._state = AggregatorState.settled
        self._settled.set()
        logger.info(
            "Location settled "
            f"attempt={attempt} status={self._status.value} source={self._source_label().value} "
            f"precise_failure={self._precise_failure}"
        )
        return self.result()
