import asyncio

from pydantic import ValidationError

from georeg.errors import (
    LocationSourceError,
    LocationTimeoutError,
    PermissionDeniedError,
    PositionUnavailableError,
    ResolutionInProgressError,
)
from georeg.location.capability import GeolocationCapability, PositionOptions
from georeg.logger import logger
from georeg.models.common import Coordinates
from georeg.models.request_models import PositionErrorCode, PositionReport

DEFAULT_TIMEOUT_MS = 5000
RETRY_TIMEOUT_MS = 10000

_ERRORS_BY_CODE: dict[PositionErrorCode, type[LocationSourceError]] = {
    PositionErrorCode.permission_denied: PermissionDeniedError,
    PositionErrorCode.position_unavailable: PositionUnavailableError,
    PositionErrorCode.timeout: LocationTimeoutError,
}


class PreciseLocationProvider:
    """Single-shot, high-accuracy reading from the platform location capability.

    Each call to `resolve` is one attempt with a monotonically increasing id.
    The capability's callbacks are bridged into an asyncio future; when the
    timeout elapses the future is cancelled, and a callback that fires later
    finds it done and is discarded.
    """

    def __init__(self, capability: GeolocationCapability | None) -> None:
        self._capability = capability
        self._attempt = 0
        self._pending: asyncio.Future[PositionReport] | None = None

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def in_flight(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def resolve(self, timeout_ms: int = DEFAULT_TIMEOUT_MS, max_age_ms: int = 0) -> Coordinates:
        """Request one reading; raises a LocationSourceError subclass on failure."""
        if self.in_flight:
            raise ResolutionInProgressError("A precise location request is already outstanding.")
        if self._capability is None:
            raise PositionUnavailableError("Geolocation is not supported on this platform.")

        self._attempt += 1
        attempt = self._attempt
        future: asyncio.Future[PositionReport] = asyncio.get_running_loop().create_future()
        self._pending = future

        def on_success(report: PositionReport) -> bool:
            if self._is_stale(attempt, future):
                return False
            future.set_result(report)
            return True

        def on_error(code: PositionErrorCode, message: str = "") -> bool:
            if self._is_stale(attempt, future):
                return False
            error_cls = _ERRORS_BY_CODE.get(code, PositionUnavailableError)
            future.set_exception(error_cls(message or code.value))
            return True

        options = PositionOptions(high_accuracy=True, timeout_ms=timeout_ms, maximum_age_ms=max_age_ms)
        logger.info(f"Requesting precise location attempt={attempt} timeout_ms={timeout_ms}")

        try:
            self._capability.get_current_position(on_success, on_error, options)
            report = await asyncio.wait_for(future, timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            logger.warning(f"Precise location timed out attempt={attempt} timeout_ms={timeout_ms}")
            raise LocationTimeoutError(f"Location request timed out after {timeout_ms} ms.") from exc
        finally:
            if self._pending is future:
                self._pending = None

        return self._to_coordinates(report, attempt)

    def _is_stale(self, attempt: int, future: asyncio.Future[PositionReport]) -> bool:
        if future.done() or attempt != self._attempt:
            logger.info(f"Discarding stale position callback attempt={attempt} current_attempt={self._attempt}")
            return True
        return False

    @staticmethod
    def _to_coordinates(report: PositionReport, attempt: int) -> Coordinates:
        try:
            coordinates = Coordinates(
                latitude=report.latitude,
                longitude=report.longitude,
                accuracy_meters=report.accuracy,
                captured_at=report.timestamp,
            )
        except ValidationError as exc:
            logger.warning(f"Rejecting invalid position reading attempt={attempt} error={exc.errors()}")
            raise PositionUnavailableError("Location reading is outside the valid coordinate range.") from exc

        if coordinates.is_sentinel:
            raise PositionUnavailableError("Location reading (0, 0) is indistinguishable from no fix.")
        return coordinates
