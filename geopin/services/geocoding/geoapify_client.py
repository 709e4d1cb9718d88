"""Geoapify geocoding client (search, reverse, autocomplete)."""

from __future__ import annotations

import logging
from typing import Any, NamedTuple, Optional

import httpx
from pydantic import SecretStr

from ...core.config import Settings
from ...core.constants import AUTOCOMPLETE_DEFAULT_LIMIT, AUTOCOMPLETE_PROVIDER_MIN_LENGTH
from ...utils.geo import coordinate_label, is_valid_lat_lng, normalize_country_code
from .base import (
    AutocompleteResult,
    Coordinates,
    GeocodeErrorKind,
    GeocodeResult,
    GeocodingClient,
    Suggestion,
)

logger = logging.getLogger(__name__)


class _ProviderResponse(NamedTuple):
    results: list[dict[str, Any]]
    error_kind: GeocodeErrorKind = GeocodeErrorKind.NONE
    error_message: Optional[str] = None
    has_results_key: bool = True

    @property
    def ok(self) -> bool:
        return self.error_kind is GeocodeErrorKind.NONE


def _secret_value(value: SecretStr | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return str(value)


def _parse_coordinates(item: dict[str, Any]) -> Optional[Coordinates]:
    try:
        lng = float(item["lon"])
        lat = float(item["lat"])
    except (KeyError, TypeError, ValueError):
        return None
    if not is_valid_lat_lng(lat, lng):
        return None
    return (lng, lat)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _locality(item: dict[str, Any]) -> dict[str, str]:
    return {
        "country": _text(item.get("country")),
        "city": _text(item.get("city")) or _text(item.get("county")),
        "state": _text(item.get("state")),
    }


def _to_suggestion(item: Any) -> Optional[Suggestion]:
    if not isinstance(item, dict):
        return None
    address = _text(item.get("formatted")) or _text(item.get("address_line1"))
    if not address:
        return None
    return Suggestion(address=address, coordinates=_parse_coordinates(item), **_locality(item))


class GeoapifyClient(GeocodingClient):
    """Stateless translation layer between Geoapify responses and result values."""

    def __init__(
        self,
        api_key: SecretStr | str,
        *,
        base_url: str = "https://api.geoapify.com/v1/geocode",
        forward_timeout: float = 10.0,
        reverse_timeout: float = 10.0,
        autocomplete_timeout: float = 5.0,
        provider_min_length: int = AUTOCOMPLETE_PROVIDER_MIN_LENGTH,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = _secret_value(api_key).strip()
        self.base_url = base_url.rstrip("/")
        self.forward_timeout = forward_timeout
        self.reverse_timeout = reverse_timeout
        self.autocomplete_timeout = autocomplete_timeout
        self.provider_min_length = provider_min_length
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=5.0,
                read=forward_timeout,
                write=5.0,
                pool=5.0,
            ),
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, http: httpx.AsyncClient | None = None
    ) -> "GeoapifyClient":
        return cls(
            settings.geoapify_api_key,
            base_url=settings.geoapify_base_url,
            forward_timeout=settings.forward_timeout_seconds,
            reverse_timeout=settings.reverse_timeout_seconds,
            autocomplete_timeout=settings.autocomplete_timeout_seconds,
            provider_min_length=settings.autocomplete_provider_min_length,
            http=http,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def forward_geocode(self, address: str) -> GeocodeResult:
        if not isinstance(address, str) or not address.strip():
            return GeocodeResult(
                success=False,
                error_kind=GeocodeErrorKind.INVALID_INPUT,
                error_message="Invalid address provided",
            )

        response = await self._get(
            "search", {"text": address.strip(), "limit": 1}, self.forward_timeout
        )
        if not response.ok:
            return GeocodeResult(
                success=False,
                formatted_address=address,
                error_kind=response.error_kind,
                error_message=response.error_message,
            )
        if not response.results:
            return GeocodeResult(
                success=False,
                formatted_address=address,
                error_kind=GeocodeErrorKind.NO_RESULTS,
                error_message="No results found for the provided address",
            )

        first = response.results[0]
        coordinates = _parse_coordinates(first)
        if coordinates is None:
            logger.warning(
                "Geocoding result without usable coordinates",
                extra={"event": "geocode_bad_coordinates", "endpoint": "search"},
            )
            return GeocodeResult(
                success=False,
                formatted_address=address,
                error_kind=GeocodeErrorKind.NO_RESULTS,
                error_message="No usable coordinates found for the provided address",
            )
        return GeocodeResult(
            success=True,
            coordinates=coordinates,
            formatted_address=_text(first.get("formatted")) or address,
            **_locality(first),
        )

    async def reverse_geocode(self, lat: float, lng: float) -> GeocodeResult:
        if not is_valid_lat_lng(lat, lng):
            return GeocodeResult(
                success=False,
                error_kind=GeocodeErrorKind.INVALID_INPUT,
                error_message="Invalid coordinates provided",
            )

        label = coordinate_label(lat, lng)
        response = await self._get(
            "reverse", {"lat": lat, "lon": lng, "limit": 1}, self.reverse_timeout
        )
        if not response.ok:
            return GeocodeResult(
                success=False,
                error_kind=response.error_kind,
                error_message=response.error_message,
                fallback_label=label,
            )
        if not response.results:
            logger.info(
                "No address found for coordinates",
                extra={"event": "reverse_geocode_no_results", "lat": lat, "lng": lng},
            )
            return GeocodeResult(
                success=False,
                error_kind=GeocodeErrorKind.NO_RESULTS,
                error_message="No address found for the provided coordinates",
                fallback_label=label,
            )

        first = response.results[0]
        return GeocodeResult(
            success=True,
            coordinates=(float(lng), float(lat)),
            formatted_address=_text(first.get("formatted")) or label,
            **_locality(first),
        )

    async def autocomplete(
        self,
        query: str,
        limit: int = AUTOCOMPLETE_DEFAULT_LIMIT,
        country_bias: Optional[str] = None,
    ) -> AutocompleteResult:
        if not isinstance(query, str) or len(query.strip()) < self.provider_min_length:
            return AutocompleteResult(
                success=False,
                error_kind=GeocodeErrorKind.INVALID_INPUT,
                error_message=(
                    f"Query must be at least {self.provider_min_length} characters long"
                ),
            )

        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            limit = AUTOCOMPLETE_DEFAULT_LIMIT
        params: dict[str, Any] = {"text": query.strip(), "limit": limit}
        country = normalize_country_code(country_bias)
        if country:
            params["bias"] = f"countrycode:{country}"

        response = await self._get("autocomplete", params, self.autocomplete_timeout)
        if not response.ok:
            return AutocompleteResult(
                success=False,
                error_kind=response.error_kind,
                error_message=response.error_message,
            )
        if not response.has_results_key:
            return AutocompleteResult(
                success=False,
                error_kind=GeocodeErrorKind.NO_RESULTS,
                error_message="No suggestions found",
            )

        suggestions = tuple(
            suggestion
            for suggestion in (_to_suggestion(item) for item in response.results)
            if suggestion is not None
        )
        return AutocompleteResult(success=True, suggestions=suggestions)

    async def _get(self, endpoint: str, params: dict[str, Any], timeout: float) -> _ProviderResponse:
        query = {**params, "apiKey": self._api_key, "format": "json"}
        try:
            response = await self.http.get(
                f"{self.base_url}/{endpoint}", params=query, timeout=timeout
            )
        except httpx.TimeoutException:
            logger.warning(
                "Geocoding request timed out",
                extra={"event": "geocode_timeout", "endpoint": endpoint, "timeout": timeout},
            )
            return _ProviderResponse(
                [],
                GeocodeErrorKind.TIMEOUT,
                f"Geocoding request timed out after {timeout}s",
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "Geocoding request failed",
                extra={"event": "geocode_network_error", "endpoint": endpoint, "error": str(exc)},
            )
            return _ProviderResponse(
                [], GeocodeErrorKind.NETWORK_ERROR, f"Geocoding failed: {exc}"
            )

        if response.status_code in {401, 403}:
            logger.error(
                "Geocoding provider rejected the API key; check MAP_TOKEN",
                extra={
                    "event": "geocode_unauthorized",
                    "endpoint": endpoint,
                    "status_code": response.status_code,
                },
            )
            return _ProviderResponse(
                [], GeocodeErrorKind.UNAUTHORIZED, "Invalid API key for geocoding service"
            )
        if response.status_code == 429:
            logger.warning(
                "Geocoding provider rate limited the request",
                extra={"event": "geocode_rate_limited", "endpoint": endpoint},
            )
            return _ProviderResponse(
                [], GeocodeErrorKind.RATE_LIMITED, "Rate limit exceeded for geocoding service"
            )
        if response.status_code >= 400:
            return _ProviderResponse(
                [],
                GeocodeErrorKind.NETWORK_ERROR,
                f"Geocoding failed: HTTP {response.status_code}",
            )

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            return _ProviderResponse(
                [], GeocodeErrorKind.NETWORK_ERROR, "Invalid response from geocoding service"
            )

        results = payload.get("results")
        if not isinstance(results, list):
            return _ProviderResponse([], has_results_key=False)
        return _ProviderResponse([item for item in results if isinstance(item, dict)])
