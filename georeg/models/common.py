from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

UNKNOWN = "Unknown"
SENTINEL_POINT: tuple[float, float] = (0.0, 0.0)


def is_unknown(value: str | None) -> bool:
    """True for values a source did not populate (None, blank or "Unknown")."""
    return value is None or not str(value).strip() or value == UNKNOWN


def _unknown_if_blank(value: Any) -> str:
    if value is None:
        return UNKNOWN
    value_str = str(value).strip()
    return value_str or UNKNOWN


class SourceLabel(str, Enum):
    """Which source the settled location came from."""

    browser = "browser"
    ip = "ip"
    none = "none"


class LocationStatus(str, Enum):
    """Informational status label exposed to the caller."""

    detecting = "detecting"
    precise = "precise"
    approximate = "approximate"
    unavailable = "unavailable"


class Coordinates(BaseModel):
    """A single position fix. Immutable once produced by a provider."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy_meters: float | None = Field(default=None, ge=0)
    captured_at: datetime | None = None

    @property
    def is_sentinel(self) -> bool:
        return (self.latitude, self.longitude) == SENTINEL_POINT

    def as_point(self) -> list[float]:
        """GeoJSON ordering: [longitude, latitude]."""
        return [self.longitude, self.latitude]


class PlaceInfo(BaseModel):
    """Human-readable place; every field is "Unknown" until resolved."""

    city: str = UNKNOWN
    region: str = UNKNOWN
    country: str = UNKNOWN
    timezone: str = UNKNOWN

    @field_validator("city", "region", "country", "timezone", mode="before")
    @classmethod
    def _default_unknown(cls, value: Any) -> str:
        return _unknown_if_blank(value)


class NetworkInfo(BaseModel):
    """Network-origin metadata; each field is independently optional."""

    public_address: str = UNKNOWN
    isp: str = UNKNOWN
    organization: str = UNKNOWN
    country: str = UNKNOWN
    region: str = UNKNOWN
    timezone: str = UNKNOWN

    @field_validator("public_address", "isp", "organization", "country", "region", "timezone", mode="before")
    @classmethod
    def _default_unknown(cls, value: Any) -> str:
        return _unknown_if_blank(value)


class NetworkEstimate(BaseModel):
    """Normalized result of a network/IP location lookup."""

    place: PlaceInfo = Field(default_factory=PlaceInfo)
    network: NetworkInfo = Field(default_factory=NetworkInfo)
    approximate_coordinates: Coordinates | None = None


class DeviceInfo(BaseModel):
    """Static device/browser classification, derived once."""

    model_config = ConfigDict(frozen=True)

    os: str = UNKNOWN
    browser_family: str = UNKNOWN
    platform: str = UNKNOWN
    user_agent_raw: str = UNKNOWN
    is_mobile: bool = False
    is_desktop: bool = False
    is_bot: bool = False


class LocationRecord(BaseModel):
    """Aggregate location record, merged in place while the pipeline runs.

    `coordinates` stays None unless a precise fix was obtained; callers that
    need a point get the (0, 0) sentinel from `current_point`, which must never
    be treated as a real position.
    """

    coordinates: Coordinates | None = None
    approximate_coordinates: Coordinates | None = None
    place: PlaceInfo = Field(default_factory=PlaceInfo)
    network: NetworkInfo = Field(default_factory=NetworkInfo)
    precise: bool = False

    @model_validator(mode="after")
    def _check_precise_has_coordinates(self) -> "LocationRecord":
        if self.precise and (self.coordinates is None or self.coordinates.is_sentinel):
            raise ValueError("a precise record requires non-sentinel coordinates")
        return self

    @classmethod
    def empty(cls) -> "LocationRecord":
        return cls()

    @property
    def current_point(self) -> list[float]:
        if self.coordinates is None:
            return list(SENTINEL_POINT)
        return self.coordinates.as_point()

    def is_empty(self) -> bool:
        return self == LocationRecord.empty()

    def snapshot(self) -> "LocationRecord":
        """Deep copy, so later merges do not leak into consumers."""
        return self.model_copy(deep=True)


class RegistrationForm(BaseModel):
    """User-entered registration fields."""

    username: str = Field(min_length=1)
    email: str = Field(min_length=3)
    secret: SecretStr

    @field_validator("username", "email", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        local, _, domain = value.partition("@")
        if not local or "." not in domain:
            raise ValueError("email must look like name@example.com")
        return value


class RegistrationPayload(BaseModel):
    """Consolidated payload sent to the registration backend."""

    model_config = ConfigDict(frozen=True)

    form: RegistrationForm
    location_record: LocationRecord
    device_info: DeviceInfo
    source_label: SourceLabel

    @model_validator(mode="after")
    def _reject_without_source(self) -> "RegistrationPayload":
        if self.source_label is SourceLabel.none:
            raise ValueError("a payload cannot be built without a location source")
        return self

    def _best_coordinates(self) -> Coordinates | None:
        record = self.location_record
        return record.coordinates or record.approximate_coordinates

    def to_request_body(self) -> dict[str, Any]:
        """Serialize into the JSON body the registration backend expects."""
        record = self.location_record
        device = self.device_info
        best = self._best_coordinates()

        browser_coordinates = None
        if record.precise and record.coordinates is not None:
            browser_coordinates = {
                "coordinates": record.coordinates.as_point(),
                "accuracy": record.coordinates.accuracy_meters,
                "capturedAt": record.coordinates.captured_at.isoformat() if record.coordinates.captured_at else None,
                "source": SourceLabel.browser.value,
            }

        return {
            "username": self.form.username,
            "email": self.form.email,
            "secret": self.form.secret.get_secret_value(),
            "locationInfo": {
                "location": {
                    "current": {"type": "Point", "coordinates": record.current_point},
                    "city": record.place.city,
                    "region": record.place.region,
                    "country": record.place.country,
                    "timezone": record.place.timezone,
                },
                "networkInfo": {
                    "ip": record.network.public_address,
                    "isp": record.network.isp,
                    "org": record.network.organization,
                    "country": record.network.country,
                    "region": record.network.region,
                    "timezone": record.network.timezone,
                },
                "deviceInfo": {
                    "browser": device.browser_family,
                    "os": device.os,
                    "platform": device.platform,
                    "userAgent": device.user_agent_raw,
                    "isMobile": device.is_mobile,
                    "isDesktop": device.is_desktop,
                    "isBot": device.is_bot,
                },
                "precise": record.precise,
            },
            "browserCoordinates": browser_coordinates,
            "latitude": best.latitude if best else None,
            "longitude": best.longitude if best else None,
            "locationType": self.source_label.value,
        }


class SubmissionResult(BaseModel):
    """Outcome of a successful registration call."""

    status_code: int
    body: dict[str, Any] = Field(default_factory=dict)
