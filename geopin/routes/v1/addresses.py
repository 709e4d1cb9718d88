# geopin/routes/v1/addresses.py
"""
Address routes - API v1

Geocoding endpoints used by the listing form and map. The provider key never
leaves the server.

Endpoints:
    GET /address-suggestions   → Autocomplete suggestions for a partial address
    GET /geocode               → Forward geocode a full address
    GET /reverse-geocode       → Reverse geocode a coordinate pair
"""

import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from ...core.config import settings
from ...core.exceptions import DomainException, ServiceUnavailableException, ValidationException
from ...schemas.address import AddressSuggestionsResponse, GeocodeResponse, SuggestionItem
from ...services.geocoding import GeocodingClient, create_geocoding_client
from ...utils.geo import is_valid_lat_lng, normalize_country_code

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["addresses-v1"])


async def get_geocoding_client() -> AsyncIterator[GeocodingClient]:
    client = create_geocoding_client()
    try:
        yield client
    finally:
        await client.aclose()


def _suggestions_error(status_code: int, message: str) -> JSONResponse:
    body = AddressSuggestionsResponse(success=False, suggestions=[], error=message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _validate_query(query: Optional[str]) -> str:
    if not isinstance(query, str) or not query.strip():
        raise ValidationException(
            "Query parameter is required and must be a string", code="QUERY_REQUIRED"
        )
    trimmed = query.strip()
    if len(trimmed) < settings.autocomplete_min_length:
        raise ValidationException(
            f"Query must be at least {settings.autocomplete_min_length} characters long",
            code="QUERY_TOO_SHORT",
        )
    if len(trimmed) > settings.autocomplete_max_length:
        raise ValidationException("Query is too long", code="QUERY_TOO_LONG")
    return trimmed


@router.get("/address-suggestions", response_model=AddressSuggestionsResponse)
async def address_suggestions(
    query: Optional[str] = Query(None, description="Partial address typed by the user"),
    country: Optional[str] = Query(None, description="Optional ISO alpha-2 country bias"),
    client: GeocodingClient = Depends(get_geocoding_client),
) -> AddressSuggestionsResponse | JSONResponse:
    """
    Return up to ``autocomplete_limit`` suggestions in provider relevance order.

    Every response, including failures, uses the
    ``{success, suggestions, error}`` envelope.
    """
    try:
        text = _validate_query(query)
        if not client.configured:
            logger.error(
                "Geocoding API key not configured",
                extra={"event": "geocoding_unconfigured"},
            )
            raise ServiceUnavailableException()

        result = await client.autocomplete(
            text,
            limit=settings.autocomplete_limit,
            country_bias=normalize_country_code(country),
        )
        return AddressSuggestionsResponse(
            success=result.success,
            suggestions=[SuggestionItem.from_suggestion(s) for s in result.suggestions],
            error=result.error_message,
        )
    except DomainException as e:
        return _suggestions_error(e.status_code, e.message)
    except Exception as e:
        logger.error(
            "Address autocomplete error: %s",
            str(e),
            exc_info=True,
            extra={"event": "address_suggestions_failed"},
        )
        return _suggestions_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to get address suggestions"
        )


@router.get("/geocode", response_model=GeocodeResponse)
async def geocode_address(
    address: Optional[str] = Query(None, description="Full address to geocode"),
    client: GeocodingClient = Depends(get_geocoding_client),
) -> GeocodeResponse:
    """Forward geocode a full address."""
    try:
        if not isinstance(address, str) or not address.strip():
            raise ValidationException("Address parameter is required", code="ADDRESS_REQUIRED")
        if not client.configured:
            raise ServiceUnavailableException()
        result = await client.forward_geocode(address.strip())
        return GeocodeResponse.from_result(result)
    except DomainException as e:
        raise e.to_http_exception()


@router.get("/reverse-geocode", response_model=GeocodeResponse)
async def reverse_geocode(
    lat: Optional[float] = Query(None, description="Latitude in degrees"),
    lng: Optional[float] = Query(None, description="Longitude in degrees"),
    client: GeocodingClient = Depends(get_geocoding_client),
) -> GeocodeResponse:
    """
    Reverse geocode a map pin.

    A failed lookup still answers 200 with ``success: false`` and a
    ``display_address`` of the form ``"lat, lng"``.
    """
    try:
        if lat is None or lng is None or not is_valid_lat_lng(lat, lng):
            raise ValidationException("Invalid coordinates provided", code="INVALID_COORDINATES")
        if not client.configured:
            raise ServiceUnavailableException()
        result = await client.reverse_geocode(lat, lng)
        return GeocodeResponse.from_result(result)
    except DomainException as e:
        raise e.to_http_exception()
