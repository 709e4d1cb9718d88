"""Factory for geocoding clients."""

from typing import Optional

from ...core.config import Settings, settings as default_settings
from .base import GeocodingClient
from .geoapify_client import GeoapifyClient
from .mock_provider import MockGeocodingClient


def create_geocoding_client(
    provider_override: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> GeocodingClient:
    cfg = settings or default_settings
    name = (provider_override or cfg.geocoding_provider or "geoapify").lower()
    client: GeocodingClient
    if name == "mock":
        client = MockGeocodingClient()
    else:
        client = GeoapifyClient.from_settings(cfg)
    return client
