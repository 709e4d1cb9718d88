"""Geocoding applied to listing create and update.

Storage is owned by the caller. This service only decides what geometry,
location text and country a listing should carry after its address changed,
and whether the user should see a warning.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import re
from typing import Any, Mapping, Optional

from ..core.config import Settings, settings as default_settings
from ..utils.geo import default_point_geometry, is_valid_point, point_geometry
from .geocoding.base import GeocodeResult, GeocodingClient
from .retry import Sleep, linear_backoff, retry_geocode

logger = logging.getLogger(__name__)

CREATE_WARNING = (
    "Listing created but location mapping failed: {error}. "
    "Please update the address for accurate location display."
)
UPDATE_WARNING = "Listing updated but location mapping failed: {error}"

_WHITESPACE = re.compile(r"\s+")
_TRAILING_PUNCTUATION = ".,;: "


def normalize_address(value: Optional[str]) -> str:
    if not value:
        return ""
    collapsed = _WHITESPACE.sub(" ", value).strip().rstrip(_TRAILING_PUNCTUATION)
    return collapsed.casefold()


def is_materially_different(original: Optional[str], candidate: Optional[str]) -> bool:
    """True when ``candidate`` differs from ``original`` beyond case, spacing or trailing punctuation."""
    if not candidate:
        return False
    return normalize_address(original) != normalize_address(candidate)


@dataclass(frozen=True)
class LocationResolution:
    """What to persist on the listing after geocoding."""

    geometry: dict[str, Any]
    location: str
    country: str
    geocoded: bool
    warning: Optional[str] = None


class ListingGeocodingService:
    def __init__(
        self,
        client: GeocodingClient,
        *,
        attempts: int = 2,
        retry_delay: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.attempts = max(1, attempts)
        self.retry_delay = retry_delay
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, client: GeocodingClient, settings: Optional[Settings] = None, **kwargs: Any
    ) -> "ListingGeocodingService":
        cfg = settings or default_settings
        kwargs.setdefault("attempts", cfg.listing_geocode_attempts)
        kwargs.setdefault("retry_delay", cfg.listing_geocode_retry_delay_seconds)
        return cls(client, **kwargs)

    async def geocode_for_create(self, location: str, country: Optional[str] = None) -> LocationResolution:
        """Resolve a new listing's address. Always returns valid geometry."""
        result = await self._geocode(location)
        if result.success:
            return self._apply_success(location, country, result)

        logger.warning(
            "Geocoding failed for new listing address",
            extra={
                "event": "listing_geocode_failed",
                "operation": "create",
                "error_kind": result.error_kind.value,
                "error": result.error_message,
            },
        )
        return LocationResolution(
            geometry=default_point_geometry(),
            location=location,
            country=country or "",
            geocoded=False,
            warning=CREATE_WARNING.format(error=result.error_message),
        )

    async def geocode_for_update(
        self,
        location: str,
        country: Optional[str] = None,
        existing_geometry: Optional[Mapping[str, Any]] = None,
    ) -> LocationResolution:
        """
        Resolve an edited listing's address.

        On failure the listing keeps its current geometry when that geometry is
        valid; the default point is used only when it has none.
        """
        result = await self._geocode(location)
        if result.success:
            resolution = self._apply_success(location, country, result)
            logger.info(
                "Location updated successfully for listing",
                extra={"event": "listing_geocode_updated"},
            )
            return resolution

        logger.warning(
            "Geocoding update failed for listing",
            extra={
                "event": "listing_geocode_failed",
                "operation": "update",
                "error_kind": result.error_kind.value,
                "error": result.error_message,
            },
        )
        if existing_geometry is not None and is_valid_point(existing_geometry):
            geometry = dict(existing_geometry)
        else:
            geometry = default_point_geometry()
        return LocationResolution(
            geometry=geometry,
            location=location,
            country=country or "",
            geocoded=False,
            warning=UPDATE_WARNING.format(error=result.error_message),
        )

    async def _geocode(self, location: str) -> GeocodeResult:
        return await retry_geocode(
            "listing_forward_geocode",
            lambda: self.client.forward_geocode(location),
            max_attempts=self.attempts,
            delay=linear_backoff(self.retry_delay),
            sleep=self._sleep,
        )

    @staticmethod
    def _apply_success(
        location: str, country: Optional[str], result: GeocodeResult
    ) -> LocationResolution:
        lng, lat = result.coordinates  # type: ignore[misc]
        resolved_location = location
        if is_materially_different(location, result.formatted_address):
            resolved_location = result.formatted_address or location
        resolved_country = country or ""
        if not resolved_country.strip() and result.country:
            resolved_country = result.country
        return LocationResolution(
            geometry=point_geometry(lng, lat),
            location=resolved_location,
            country=resolved_country,
            geocoded=True,
        )
