"""GeoJSON point schema stored on listings."""

from typing import List, Literal

from pydantic import BaseModel, Field, field_validator

from ..utils.geo import is_valid_lat_lng


class PointGeometry(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(
        ..., min_length=2, max_length=2, description="[longitude, latitude]"
    )

    @field_validator("coordinates")
    @classmethod
    def _check_range(cls, value: List[float]) -> List[float]:
        lng, lat = value
        if not is_valid_lat_lng(lat, lng):
            raise ValueError("coordinates must be [lng, lat] within WGS84 bounds")
        return value

    @property
    def lng(self) -> float:
        return self.coordinates[0]

    @property
    def lat(self) -> float:
        return self.coordinates[1]
