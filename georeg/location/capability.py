"""Callback-style platform location capability.

The shape follows the browser's `navigator.geolocation.getCurrentPosition`:
the caller hands over a success and an error callback and the platform calls
exactly one of them, at some later point, possibly never.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from georeg.logger import logger
from georeg.models.request_models import PositionErrorCode, PositionReport

SuccessCallback = Callable[[PositionReport], bool]
ErrorCallback = Callable[[PositionErrorCode, str], bool]


@dataclass(frozen=True)
class PositionOptions:
    high_accuracy: bool = True
    timeout_ms: int = 5000
    maximum_age_ms: int = 0


class GeolocationCapability(Protocol):
    def get_current_position(
        self,
        on_success: SuccessCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ) -> None: ...


class ReportedPositionCapability:
    """Capability fed by the device reporting its own reading over the API.

    A report that arrives before anybody asked for a position is queued and
    handed to the next request. A report that arrives while a request is
    outstanding goes to that request's callbacks, even if the provider has
    already given up on it (the provider discards such stale readings).
    """

    def __init__(self) -> None:
        self._callbacks: tuple[SuccessCallback, ErrorCallback] | None = None
        self._queued: PositionReport | None = None

    @property
    def has_pending_request(self) -> bool:
        return self._callbacks is not None

    def get_current_position(
        self,
        on_success: SuccessCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ) -> None:
        logger.debug(
            "Position requested "
            f"high_accuracy={options.high_accuracy} timeout_ms={options.timeout_ms} "
            f"maximum_age_ms={options.maximum_age_ms}"
        )
        if self._queued is not None:
            report, self._queued = self._queued, None
            self._deliver(report, on_success, on_error)
            return
        self._callbacks = (on_success, on_error)

    def report(self, report: PositionReport) -> bool:
        """Deliver a report; returns True if a live request accepted it.

        A report for a request whose consumer has already given up is dropped
        and returns False, the same as a queued one.
        """
        if self._callbacks is None:
            logger.info(f"Queueing position report with no outstanding request error={report.error}")
            self._queued = report
            return False

        on_success, on_error = self._callbacks
        self._callbacks = None
        return self._deliver(report, on_success, on_error)

    @staticmethod
    def _deliver(report: PositionReport, on_success: SuccessCallback, on_error: ErrorCallback) -> bool:
        if report.error is not None:
            return on_error(report.error, f"Device reported {report.error.value}")
        return on_success(report)
