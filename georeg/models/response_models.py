from typing import Any

from pydantic import BaseModel

from georeg.location.aggregator import AggregatorState, LocationResult
from georeg.models.common import DeviceInfo, LocationRecord, LocationStatus, SourceLabel


class HealthResponse(BaseModel):
    """Response model for the health check endpoint."""

    status: str


class LocationResponse(BaseModel):
    """Response model for the location session state."""

    state: AggregatorState
    status: LocationStatus
    source_label: SourceLabel
    precise_failure: str | None = None
    record: LocationRecord
    device: DeviceInfo

    @classmethod
    def from_result(cls, result: LocationResult, device: DeviceInfo) -> "LocationResponse":
        return cls(
            state=result.state,
            status=result.status,
            source_label=result.source_label,
            precise_failure=result.precise_failure,
            record=result.record,
            device=device,
        )


class PositionReportResponse(BaseModel):
    """Whether a live position request accepted the report.

    False when the report was queued for the next request, or when it arrived
    for a request that had already timed out and was dropped.
    """

    delivered: bool


class RegistrationResponse(BaseModel):
    """Response model for a successful registration."""

    status: str = "registered"
    redirect_url: str | None = None
    backend: dict[str, Any] = {}
