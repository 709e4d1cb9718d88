"""Per-input-field address autocomplete controller.

Keystrokes are trimmed, debounced and sent to ``GeocodingClient.autocomplete``.
Every issued request carries a generation number; a response is applied only
if no newer query has started since, so a slow reply can never overwrite the
suggestions for what the user typed afterwards.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Callable, Optional, Union

from ..core.config import Settings, settings as default_settings
from ..core.constants import (
    AUTOCOMPLETE_DEFAULT_LIMIT,
    AUTOCOMPLETE_MAX_LENGTH,
    AUTOCOMPLETE_MIN_LENGTH,
    NO_SELECTION,
)
from ..utils.geo import normalize_country_code
from .debounce import Debouncer
from .geocoding.base import AutocompleteResult, GeocodeErrorKind, GeocodingClient, Suggestion
from .pin_session import PinSession
from .retry import Sleep, linear_backoff, retry_geocode

logger = logging.getLogger(__name__)

# Timeouts surface as an error state without a retry.
AUTOCOMPLETE_RETRY_KINDS = frozenset({GeocodeErrorKind.RATE_LIMITED, GeocodeErrorKind.NETWORK_ERROR})

TIMEOUT_MESSAGE = "Request timed out. Please try again."
CONNECTION_MESSAGE = "Unable to load suggestions. Please check your connection."
UNAVAILABLE_MESSAGE = "Address suggestions are currently unavailable."

CountryBias = Union[str, Callable[[], Optional[str]], None]


class AutocompleteStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    NO_RESULTS = "no_results"
    ERROR = "error"


@dataclass
class LocationFields:
    """The host form's location inputs that a selection may fill in."""

    address: str = ""
    country: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass
class AutocompleteState:
    query: str = ""
    suggestions: tuple[Suggestion, ...] = ()
    cursor: int = NO_SELECTION
    pending: bool = False
    generation: int = 0
    status: AutocompleteStatus = AutocompleteStatus.IDLE
    error_message: Optional[str] = None
    visible: bool = False
    # number of times a suggestion list was applied; lets callers observe display cycles
    displays: int = field(default=0, compare=False)

    @property
    def active(self) -> Optional[Suggestion]:
        if 0 <= self.cursor < len(self.suggestions):
            return self.suggestions[self.cursor]
        return None


def _error_message_for(result: AutocompleteResult) -> str:
    if result.error_kind is GeocodeErrorKind.TIMEOUT:
        return TIMEOUT_MESSAGE
    if result.error_kind is GeocodeErrorKind.UNAUTHORIZED:
        return UNAVAILABLE_MESSAGE
    return CONNECTION_MESSAGE


class AutocompleteSession:
    """
    Controller for one address input.

    Failures never raise to the caller; they end up as ``status == ERROR``
    with a dismissible ``error_message``.
    """

    def __init__(
        self,
        client: GeocodingClient,
        *,
        fields: Optional[LocationFields] = None,
        pin_session: Optional[PinSession] = None,
        min_length: int = AUTOCOMPLETE_MIN_LENGTH,
        max_length: int = AUTOCOMPLETE_MAX_LENGTH,
        limit: int = AUTOCOMPLETE_DEFAULT_LIMIT,
        delay: float = 0.3,
        request_timeout: float = 8.0,
        max_retries: int = 2,
        retry_base_delay: float = 1.0,
        country_bias: CountryBias = None,
        on_select: Optional[Callable[[Suggestion], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.fields = fields if fields is not None else LocationFields()
        self.pin_session = pin_session
        self.min_length = min_length
        self.max_length = max_length
        self.limit = limit
        self.request_timeout = request_timeout
        self.max_retries = max(0, max_retries)
        self.retry_base_delay = retry_base_delay
        self.country_bias = country_bias
        self.on_select = on_select
        self.on_error = on_error
        self._sleep = sleep
        self._state = AutocompleteState()
        self._debouncer: Debouncer[str] = Debouncer(delay, self._fetch)
        self._detached = False
        self._filled_coordinates: Optional[tuple[float, float]] = None

    @classmethod
    def from_settings(
        cls,
        client: GeocodingClient,
        settings: Optional[Settings] = None,
        **kwargs: Any,
    ) -> "AutocompleteSession":
        cfg = settings or default_settings
        kwargs.setdefault("min_length", cfg.autocomplete_min_length)
        kwargs.setdefault("max_length", cfg.autocomplete_max_length)
        kwargs.setdefault("limit", cfg.autocomplete_limit)
        kwargs.setdefault("delay", cfg.autocomplete_debounce_seconds)
        kwargs.setdefault("request_timeout", cfg.autocomplete_request_timeout_seconds)
        kwargs.setdefault("max_retries", cfg.autocomplete_max_retries)
        kwargs.setdefault("retry_base_delay", cfg.autocomplete_retry_base_delay_seconds)
        return cls(client, **kwargs)

    @property
    def state(self) -> AutocompleteState:
        return self._state

    @property
    def suggestions(self) -> tuple[Suggestion, ...]:
        return self._state.suggestions

    @property
    def detached(self) -> bool:
        return self._detached

    # ------------------------------------------------------------------ input

    def on_input(self, raw: str) -> None:
        """Handle a keystroke. Schedules a request once typing pauses."""
        if self._detached:
            return
        query = raw.strip() if isinstance(raw, str) else ""
        state = self._state
        if query == state.query:
            return

        state.generation += 1
        state.query = query
        state.suggestions = ()
        state.cursor = NO_SELECTION
        state.pending = False
        state.error_message = None
        state.visible = False
        state.status = AutocompleteStatus.IDLE

        if len(query) < self.min_length or len(query) > self.max_length:
            self._debouncer.cancel()
            return

        state.status = AutocompleteStatus.LOADING
        self._debouncer.schedule(query)

    def on_focus(self) -> None:
        """Re-show suggestions the field already has."""
        state = self._state
        if len(state.query) >= self.min_length and state.suggestions:
            state.visible = True

    async def wait_idle(self) -> None:
        """Wait for the pending debounce timer and any started request."""
        await self._debouncer.wait()

    async def _fetch(self, query: str) -> None:
        state = self._state
        if self._detached or query != state.query:
            return

        state.generation += 1
        generation = state.generation
        state.pending = True
        state.status = AutocompleteStatus.LOADING
        country = self._resolve_country_bias()

        async def _attempt() -> AutocompleteResult:
            try:
                return await asyncio.wait_for(
                    self.client.autocomplete(query, self.limit, country),
                    timeout=self.request_timeout,
                )
            except asyncio.TimeoutError:
                logger.error(
                    "Address autocomplete request timed out",
                    extra={"event": "autocomplete_timeout", "timeout": self.request_timeout},
                )
                return AutocompleteResult(
                    success=False,
                    error_kind=GeocodeErrorKind.TIMEOUT,
                    error_message=TIMEOUT_MESSAGE,
                )

        result = await retry_geocode(
            "autocomplete",
            _attempt,
            max_attempts=self.max_retries + 1,
            delay=linear_backoff(self.retry_base_delay),
            retry_on=AUTOCOMPLETE_RETRY_KINDS,
            sleep=self._sleep,
            should_continue=lambda: self._is_current(generation),
        )

        if not self._is_current(generation):
            logger.debug(
                "Dropping stale autocomplete response",
                extra={"event": "autocomplete_stale", "generation": generation},
            )
            return

        state.pending = False
        self._apply(result)

    def _apply(self, result: AutocompleteResult) -> None:
        state = self._state
        state.cursor = NO_SELECTION
        state.visible = True

        if result.success and result.suggestions:
            state.suggestions = result.suggestions
            state.status = AutocompleteStatus.READY
            state.error_message = None
            state.displays += 1
            return

        state.suggestions = ()
        # provider minimum is 3; a 2-character query just has no matches
        if result.success or result.error_kind in {
            GeocodeErrorKind.NO_RESULTS,
            GeocodeErrorKind.INVALID_INPUT,
        }:
            state.status = AutocompleteStatus.NO_RESULTS
            state.error_message = None
            return

        message = _error_message_for(result)
        state.status = AutocompleteStatus.ERROR
        state.error_message = message
        logger.warning(
            "Address autocomplete failed",
            extra={
                "event": "autocomplete_failed",
                "error_kind": result.error_kind.value,
                "error": result.error_message,
            },
        )
        if self.on_error is not None:
            self.on_error(message)

    def _is_current(self, generation: int) -> bool:
        return not self._detached and generation == self._state.generation

    def _resolve_country_bias(self) -> Optional[str]:
        bias = self.country_bias
        if callable(bias):
            bias = bias()
        if bias is None:
            bias = self.fields.country
        return normalize_country_code(bias)

    # ------------------------------------------------------------------ navigation

    def move_selection(self, direction: int) -> int:
        """Move the cursor by ``direction``, wrapping at both ends."""
        state = self._state
        count = len(state.suggestions)
        if count == 0 or not state.visible:
            return state.cursor
        cursor = state.cursor + direction
        if cursor < 0:
            cursor = count - 1
        elif cursor >= count:
            cursor = 0
        state.cursor = cursor
        return cursor

    def set_active_index(self, index: int) -> None:
        if 0 <= index < len(self._state.suggestions):
            self._state.cursor = index

    def hide(self) -> None:
        self._state.visible = False
        self._state.cursor = NO_SELECTION

    def dismiss_error(self) -> None:
        state = self._state
        if state.status is AutocompleteStatus.ERROR:
            state.status = AutocompleteStatus.IDLE
            state.error_message = None
            state.visible = False

    async def select_current(self) -> Optional[Suggestion]:
        cursor = self._state.cursor
        if cursor == NO_SELECTION:
            return None
        return await self.select(cursor)

    async def select(self, index: int) -> Optional[Suggestion]:
        """
        Apply the suggestion at ``index`` to the form and the map.

        The address is always written. Country only fills an empty field.
        Coordinates fill empty fields and replace ones an earlier selection
        wrote, but never ones the user entered, so the form always matches
        the pin it placed. With coordinates the pin is placed directly;
        without them the address is forward-geocoded through the pin session
        and the resolved coordinates are written back.
        """
        suggestions = self._state.suggestions
        if not 0 <= index < len(suggestions):
            return None
        suggestion = suggestions[index]

        self.hide()
        self._populate_fields(suggestion)
        if self.on_select is not None:
            self.on_select(suggestion)

        if self.pin_session is not None:
            if suggestion.coordinates is not None:
                lng, lat = suggestion.coordinates
                self.pin_session.set_location(lat, lng, suggestion.address)
            else:
                logger.warning(
                    "No coordinates available for selected address",
                    extra={"event": "autocomplete_missing_coordinates"},
                )
                placed = await self.pin_session.search_and_set_location(suggestion.address)
                committed = self.pin_session.committed
                if placed and committed is not None:
                    self._fill_coordinates(committed.coordinates)
                else:
                    logger.warning(
                        "Failed to geocode selected address",
                        extra={"event": "autocomplete_fallback_failed"},
                    )
        return suggestion

    def _populate_fields(self, suggestion: Suggestion) -> None:
        fields = self.fields
        fields.address = suggestion.address
        if suggestion.country and not fields.country.strip():
            fields.country = suggestion.country
        if suggestion.coordinates is not None:
            self._fill_coordinates(suggestion.coordinates)

    def _fill_coordinates(self, coordinates: tuple[float, float]) -> None:
        """Write ``(lng, lat)`` unless the fields hold coordinates this session did not set."""
        fields = self.fields
        current = (fields.longitude, fields.latitude)
        if fields.has_coordinates and current != self._filled_coordinates:
            return
        fields.longitude, fields.latitude = coordinates
        self._filled_coordinates = coordinates

    # ------------------------------------------------------------------ teardown

    async def detach(self) -> None:
        """Cancel timers and in-flight work; the session ignores input afterwards."""
        self._detached = True
        await self._debouncer.aclose()
        self._state = AutocompleteState(generation=self._state.generation + 1)

    aclose = detach
