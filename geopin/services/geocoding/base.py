"""Provider-agnostic geocoding interfaces and result shapes."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

# (longitude, latitude), GeoJSON order
Coordinates = tuple[float, float]


class GeocodeErrorKind(str, Enum):
    NONE = "none"
    INVALID_INPUT = "invalid_input"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    NO_RESULTS = "no_results"
    NETWORK_ERROR = "network_error"

    @property
    def is_transient(self) -> bool:
        return self in TRANSIENT_ERROR_KINDS


TRANSIENT_ERROR_KINDS = frozenset(
    {
        GeocodeErrorKind.RATE_LIMITED,
        GeocodeErrorKind.TIMEOUT,
        GeocodeErrorKind.NETWORK_ERROR,
    }
)


class GeocodeResult(BaseModel):
    """Outcome of a forward or reverse geocode.

    ``fallback_label`` is only set by reverse geocoding when no address could
    be resolved; it is a display value, not an address.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    coordinates: Optional[Coordinates] = None
    formatted_address: Optional[str] = None
    country: str = ""
    city: str = ""
    state: str = ""
    error_kind: GeocodeErrorKind = GeocodeErrorKind.NONE
    error_message: Optional[str] = None
    fallback_label: Optional[str] = None

    @model_validator(mode="after")
    def _check_error_kind(self) -> "GeocodeResult":
        if self.success != (self.error_kind is GeocodeErrorKind.NONE):
            raise ValueError("error_kind must be 'none' exactly when success is true")
        return self

    @property
    def longitude(self) -> Optional[float]:
        return self.coordinates[0] if self.coordinates else None

    @property
    def latitude(self) -> Optional[float]:
        return self.coordinates[1] if self.coordinates else None

    @property
    def display_address(self) -> Optional[str]:
        return self.formatted_address or self.fallback_label


class Suggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    coordinates: Optional[Coordinates] = None
    country: str = ""
    city: str = ""
    state: str = ""


class AutocompleteResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    suggestions: tuple[Suggestion, ...] = ()
    error_message: Optional[str] = None
    error_kind: GeocodeErrorKind = GeocodeErrorKind.NONE


class GeocodingClient(ABC):
    """Uniform contract over the upstream geocoding provider.

    Implementations MUST NOT raise for upstream failures; every outcome is
    reported through the returned result value. Retries are the caller's
    responsibility.
    """

    @abstractmethod
    async def forward_geocode(self, address: str) -> GeocodeResult:
        pass

    @abstractmethod
    async def reverse_geocode(self, lat: float, lng: float) -> GeocodeResult:
        pass

    @abstractmethod
    async def autocomplete(
        self,
        query: str,
        limit: int = 5,
        country_bias: Optional[str] = None,
    ) -> AutocompleteResult:
        pass

    @property
    def configured(self) -> bool:
        """False when the client lacks the credentials to reach its provider."""
        return True

    async def aclose(self) -> None:
        return None
