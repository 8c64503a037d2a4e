from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class PositionErrorCode(str, Enum):
    """Error codes of the platform location capability."""

    permission_denied = "permission_denied"
    position_unavailable = "position_unavailable"
    timeout = "timeout"

    @classmethod
    def from_w3c(cls, code: int) -> "PositionErrorCode":
        """Map W3C GeolocationPositionError codes (1, 2, 3)."""
        mapping = {1: cls.permission_denied, 2: cls.position_unavailable, 3: cls.timeout}
        try:
            return mapping[code]
        except KeyError as exc:
            raise ValueError(f"unknown geolocation error code {code}") from exc


class PositionReport(BaseModel):
    """A reading (or an error) as reported by the device's location capability.

    Range checks are left to the provider, which turns an unusable reading into
    a position-unavailable failure instead of rejecting the report.
    """

    latitude: float | None = None
    longitude: float | None = None
    accuracy: float | None = Field(default=None, description="Accuracy radius in meters.")
    timestamp: datetime | None = Field(
        default=None,
        description="When the fix was taken; epoch milliseconds or ISO-8601.",
        examples=[1700000000000, "2024-01-01T12:00:00Z"],
    )
    error: PositionErrorCode | None = None

    @field_validator("error", mode="before")
    @classmethod
    def _accept_w3c_codes(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return PositionErrorCode.from_w3c(value)
        return value

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_epoch_ms(cls, value: Any) -> Any:
        """Browsers report `position.timestamp` as epoch milliseconds."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        return value

    @model_validator(mode="after")
    def _reading_or_error(self) -> "PositionReport":
        has_reading = self.latitude is not None and self.longitude is not None
        if self.error is None and not has_reading:
            raise ValueError("a position report needs latitude and longitude, or an error code")
        if self.error is not None and has_reading:
            raise ValueError("a position report cannot carry both a reading and an error code")
        return self
