"""Application-wide constants for geopin."""

from __future__ import annotations

from typing import Final, NamedTuple


class LatLng(NamedTuple):
    lat: float
    lng: float


# Fallback point stored whenever a listing's address cannot be geocoded
# (Bhubaneswar, Odisha, India). Listings must always carry valid geometry.
DEFAULT_COORDINATES: Final = LatLng(lat=20.2960, lng=85.8246)

# Coordinate bounds (WGS84)
MIN_LATITUDE = -90.0
MAX_LATITUDE = 90.0
MIN_LONGITUDE = -180.0
MAX_LONGITUDE = 180.0

# Precision used for synthesized "lat, lng" labels
COORDINATE_LABEL_DECIMALS = 4

# Autocomplete query constraints
AUTOCOMPLETE_MIN_LENGTH = 2  # caller-facing API / input field
AUTOCOMPLETE_PROVIDER_MIN_LENGTH = 3  # enforced before hitting the provider
AUTOCOMPLETE_MAX_LENGTH = 200
AUTOCOMPLETE_DEFAULT_LIMIT = 5

# Cursor value meaning "no suggestion highlighted"
NO_SELECTION = -1
