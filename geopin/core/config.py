# geopin/core/config.py
"""Runtime settings loaded from environment."""

from __future__ import annotations

import logging

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    AUTOCOMPLETE_DEFAULT_LIMIT,
    AUTOCOMPLETE_MAX_LENGTH,
    AUTOCOMPLETE_MIN_LENGTH,
    AUTOCOMPLETE_PROVIDER_MIN_LENGTH,
)

logger = logging.getLogger(__name__)

SUPPORTED_GEOCODING_PROVIDERS = {"geoapify", "mock"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = "geopin"
    debug: bool = False

    # Geocoding provider
    geocoding_provider: str = Field(
        default="geoapify", description="Geocoding provider: geoapify|mock"
    )
    geoapify_api_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("MAP_TOKEN", "GEOAPIFY_API_KEY", "geoapify_api_key"),
        description="Geoapify API key used for search, reverse and autocomplete",
    )
    geoapify_base_url: str = Field(
        default="https://api.geoapify.com/v1/geocode",
        description="Base URL of the Geoapify geocoding API",
    )

    # Per-call hard caps (seconds)
    forward_timeout_seconds: float = Field(default=10.0, gt=0)
    reverse_timeout_seconds: float = Field(default=10.0, gt=0)
    autocomplete_timeout_seconds: float = Field(default=5.0, gt=0)

    # Autocomplete session
    autocomplete_min_length: int = Field(default=AUTOCOMPLETE_MIN_LENGTH, ge=1)
    autocomplete_provider_min_length: int = Field(
        default=AUTOCOMPLETE_PROVIDER_MIN_LENGTH,
        ge=1,
        description="Minimum query length sent to the provider",
    )
    autocomplete_max_length: int = Field(default=AUTOCOMPLETE_MAX_LENGTH, ge=1)
    autocomplete_limit: int = Field(default=AUTOCOMPLETE_DEFAULT_LIMIT, ge=1, le=20)
    autocomplete_debounce_ms: int = Field(default=300, ge=0)
    autocomplete_request_timeout_seconds: float = Field(default=8.0, gt=0)
    autocomplete_max_retries: int = Field(
        default=2, ge=0, description="Retries after a rate-limited autocomplete call"
    )
    autocomplete_retry_base_delay_seconds: float = Field(default=1.0, ge=0)

    # Pin placement
    pin_retry_attempts: int = Field(default=3, ge=1)
    pin_retry_delay_seconds: float = Field(default=1.0, ge=0)
    pin_request_timeout_seconds: float = Field(default=10.0, gt=0)

    # Listing create/update geocoding
    listing_geocode_attempts: int = Field(default=2, ge=1)
    listing_geocode_retry_delay_seconds: float = Field(default=1.0, ge=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("geocoding_provider")
    @classmethod
    def _normalize_provider(cls, value: str) -> str:
        normalized = (value or "geoapify").strip().lower()
        if normalized not in SUPPORTED_GEOCODING_PROVIDERS:
            logger.warning("Unknown geocoding provider %r; using geoapify", value)
            return "geoapify"
        return normalized

    @property
    def geoapify_key_configured(self) -> bool:
        return bool(self.geoapify_api_key.get_secret_value().strip())

    @property
    def autocomplete_debounce_seconds(self) -> float:
        return self.autocomplete_debounce_ms / 1000.0


settings = Settings()
