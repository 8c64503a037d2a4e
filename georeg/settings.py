"""Application settings (Pydantic Settings)."""

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Provider(str, Enum):
    """Supported network (IP) location providers."""

    ip_api_com = "ip-api.com"
    ipapi_co = "ipapi.co"


class FallbackStrategy(str, Enum):
    """When the network estimate is requested relative to the precise request."""

    parallel = "parallel"
    sequential = "sequential"


class Settings(BaseSettings):
    """Application settings, read from GEOREG_* environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="GEOREG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR")

    # Location pipeline
    precise_timeout_ms: int = Field(default=5000, gt=0, description="Initial precise request timeout")
    retry_timeout_ms: int = Field(default=10000, gt=0, description="User-initiated retry timeout")
    max_age_ms: int = Field(default=0, ge=0, description="Maximum age of a cached position fix")
    fallback_strategy: FallbackStrategy = Field(default=FallbackStrategy.parallel)
    network_grace_ms: int = Field(
        default=1000,
        ge=0,
        description="How long to wait for a pending network lookup once precise resolution finished",
    )

    # Lookups
    network_provider: Provider = Field(default=Provider.ip_api_com)
    ip_api_com_base_url: str = Field(default="http://ip-api.com")
    ipapi_co_base_url: str = Field(default="https://ipapi.co")
    nominatim_base_url: str = Field(default="https://nominatim.openstreetmap.org")
    nominatim_user_agent: str = Field(
        default="georeg/0.1 (location registration)",
        description="Nominatim requires an identifying User-Agent",
    )
    lookup_timeout_seconds: float = Field(default=5.0, gt=0)

    # Registration backend
    registration_base_url: str = Field(default="http://localhost:5000/api")
    registration_path: str = Field(default="/user-input/register")
    registration_timeout_seconds: float = Field(default=30.0, gt=0)
    post_registration_url: str = Field(
        default="/",
        description="Destination handed to the client after a successful registration",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
