"""Mock geocoding client for local development and tests (no network calls)."""

from typing import Optional

from ...utils.geo import coordinate_label, is_valid_lat_lng, normalize_country_code
from .base import (
    AutocompleteResult,
    GeocodeErrorKind,
    GeocodeResult,
    GeocodingClient,
    Suggestion,
)

_SUGGESTIONS = (
    Suggestion(
        address="Kalinga Stadium, Nayapalli, Bhubaneswar 751012, India",
        coordinates=(85.8225, 20.2886),
        country="India",
        city="Bhubaneswar",
        state="Odisha",
    ),
    Suggestion(
        address="221B Baker St, London, UK",
        coordinates=(-0.1586, 51.5237),
        country="United Kingdom",
        city="London",
        state="England",
    ),
    # Intentionally lacks coordinates to exercise the forward-geocode fallback
    Suggestion(
        address="Needs Fallback Lane, Bhubaneswar, India",
        country="India",
        city="Bhubaneswar",
        state="Odisha",
    ),
)


class MockGeocodingClient(GeocodingClient):
    async def forward_geocode(self, address: str) -> GeocodeResult:
        if not isinstance(address, str) or not address.strip():
            return GeocodeResult(
                success=False,
                error_kind=GeocodeErrorKind.INVALID_INPUT,
                error_message="Invalid address provided",
            )
        # Return a deterministic coordinate for any input
        return GeocodeResult(
            success=True,
            coordinates=(85.8246, 20.2960),
            formatted_address=address.strip(),
            country="India",
            city="Bhubaneswar",
            state="Odisha",
        )

    async def reverse_geocode(self, lat: float, lng: float) -> GeocodeResult:
        if not is_valid_lat_lng(lat, lng):
            return GeocodeResult(
                success=False,
                error_kind=GeocodeErrorKind.INVALID_INPUT,
                error_message="Invalid coordinates provided",
            )
        return GeocodeResult(
            success=True,
            coordinates=(float(lng), float(lat)),
            formatted_address=f"Mock Address near {coordinate_label(lat, lng)}",
            country="India",
            city="Bhubaneswar",
            state="Odisha",
        )

    async def autocomplete(
        self,
        query: str,
        limit: int = 5,
        country_bias: Optional[str] = None,
    ) -> AutocompleteResult:
        if not isinstance(query, str) or len(query.strip()) < 3:
            return AutocompleteResult(
                success=False,
                error_kind=GeocodeErrorKind.INVALID_INPUT,
                error_message="Query must be at least 3 characters long",
            )
        suggestions = _SUGGESTIONS
        if normalize_country_code(country_bias) == "in":
            suggestions = tuple(s for s in suggestions if s.country == "India")
        return AutocompleteResult(success=True, suggestions=suggestions[: max(1, limit)])
