from .base import (
    AutocompleteResult,
    Coordinates,
    GeocodeErrorKind,
    GeocodeResult,
    GeocodingClient,
    Suggestion,
)
from .factory import create_geocoding_client
from .geoapify_client import GeoapifyClient
from .mock_provider import MockGeocodingClient

__all__ = [
    "AutocompleteResult",
    "Coordinates",
    "GeocodeErrorKind",
    "GeocodeResult",
    "GeocodingClient",
    "GeoapifyClient",
    "MockGeocodingClient",
    "Suggestion",
    "create_geocoding_client",
]
