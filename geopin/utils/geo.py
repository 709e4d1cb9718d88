"""Coordinate validation and GeoJSON point helpers."""

from __future__ import annotations

import math
from typing import Any, Mapping

from ..core.constants import (
    COORDINATE_LABEL_DECIMALS,
    DEFAULT_COORDINATES,
    MAX_LATITUDE,
    MAX_LONGITUDE,
    MIN_LATITUDE,
    MIN_LONGITUDE,
)


def _is_number(value: Any) -> bool:
    # bool is an int subclass; a True/False coordinate is always a caller bug
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_valid_latitude(value: Any) -> bool:
    return _is_number(value) and MIN_LATITUDE <= value <= MAX_LATITUDE


def is_valid_longitude(value: Any) -> bool:
    return _is_number(value) and MIN_LONGITUDE <= value <= MAX_LONGITUDE


def is_valid_lat_lng(lat: Any, lng: Any) -> bool:
    return is_valid_latitude(lat) and is_valid_longitude(lng)


def coordinate_label(lat: float, lng: float) -> str:
    """Display label used when no address is available, e.g. ``"12.3400, 56.7800"``."""
    return f"{lat:.{COORDINATE_LABEL_DECIMALS}f}, {lng:.{COORDINATE_LABEL_DECIMALS}f}"


def point_geometry(lng: float, lat: float) -> dict[str, Any]:
    """Build the GeoJSON point stored on a listing (longitude first)."""
    if not is_valid_lat_lng(lat, lng):
        raise ValueError(f"Coordinates out of range: lat={lat!r}, lng={lng!r}")
    return {"type": "Point", "coordinates": [float(lng), float(lat)]}


def default_point_geometry() -> dict[str, Any]:
    return point_geometry(DEFAULT_COORDINATES.lng, DEFAULT_COORDINATES.lat)


def is_valid_point(geometry: Mapping[str, Any] | None) -> bool:
    if not isinstance(geometry, Mapping) or geometry.get("type") != "Point":
        return False
    coords = geometry.get("coordinates")
    if not isinstance(coords, (list, tuple)) or len(coords) != 2:
        return False
    lng, lat = coords
    return is_valid_lat_lng(lat, lng)


def normalize_country_code(value: Any) -> str | None:
    """Return a lowercase ISO alpha-2 code, or None when ``value`` is not one."""
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    if len(cleaned) != 2 or not cleaned.isascii() or not cleaned.isalpha():
        return None
    return cleaned.lower()
