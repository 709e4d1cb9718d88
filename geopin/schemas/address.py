"""Response schemas for the address suggestion and geocode endpoints."""

from typing import List, Optional

from pydantic import BaseModel, Field

from ..services.geocoding.base import GeocodeErrorKind, GeocodeResult, Suggestion
from ..utils.geo import point_geometry
from .geometry import PointGeometry


class SuggestionItem(BaseModel):
    address: str
    coordinates: Optional[List[float]] = Field(None, description="[longitude, latitude]")
    city: str = ""
    country: str = ""

    @classmethod
    def from_suggestion(cls, suggestion: Suggestion) -> "SuggestionItem":
        return cls(
            address=suggestion.address,
            coordinates=list(suggestion.coordinates) if suggestion.coordinates else None,
            city=suggestion.city,
            country=suggestion.country,
        )


class AddressSuggestionsResponse(BaseModel):
    success: bool
    suggestions: List[SuggestionItem] = []
    error: Optional[str] = None


class GeocodeResponse(BaseModel):
    success: bool
    geometry: Optional[PointGeometry] = None
    formatted_address: Optional[str] = None
    display_address: Optional[str] = None
    country: str = ""
    city: str = ""
    state: str = ""
    error_kind: GeocodeErrorKind = GeocodeErrorKind.NONE
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: GeocodeResult) -> "GeocodeResponse":
        geometry = None
        if result.coordinates is not None:
            lng, lat = result.coordinates
            geometry = PointGeometry(**point_geometry(lng, lat))
        return cls(
            success=result.success,
            geometry=geometry,
            formatted_address=result.formatted_address,
            display_address=result.display_address,
            country=result.country,
            city=result.city,
            state=result.state,
            error_kind=result.error_kind,
            error=result.error_message,
        )
