"""Interactive pin placement on a listing map.

One ``PinSession`` per map widget. A click or marker drag places an
optimistic pin immediately, then resolves its address in the background:

    Idle -> Placing -> Resolving -> Candidate(resolved | fallback) -> Confirmed
                                    Candidate -> Idle (cancel)

A new gesture always supersedes whatever is in flight. Results that arrive
for a superseded gesture are dropped.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
import logging
from typing import Any, Callable, Optional

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import InvalidPinTransition
from ..utils.geo import coordinate_label, is_valid_lat_lng, point_geometry
from .geocoding.base import Coordinates, GeocodeErrorKind, GeocodeResult, GeocodingClient
from .retry import Sleep, linear_backoff, retry_geocode

logger = logging.getLogger(__name__)


class PinState(str, Enum):
    IDLE = "idle"
    PLACING = "placing"
    RESOLVING = "resolving"
    CANDIDATE = "candidate"
    CONFIRMED = "confirmed"


class AddressSource(str, Enum):
    RESOLVED = "resolved"
    FALLBACK_COORDS_ONLY = "fallback_coords_only"


@dataclass(frozen=True)
class PinSnapshot:
    state: PinState
    coordinates: Optional[Coordinates] = None
    address: Optional[str] = None
    source: Optional[AddressSource] = None
    error_kind: GeocodeErrorKind = GeocodeErrorKind.NONE

    @property
    def lat(self) -> Optional[float]:
        return self.coordinates[1] if self.coordinates else None

    @property
    def lng(self) -> Optional[float]:
        return self.coordinates[0] if self.coordinates else None


@dataclass(frozen=True)
class PinCommit:
    """Final coordinates and address handed back to the listing form."""

    coordinates: Coordinates
    address: str
    source: AddressSource

    @property
    def lat(self) -> float:
        return self.coordinates[1]

    @property
    def lng(self) -> float:
        return self.coordinates[0]

    @property
    def geometry(self) -> dict[str, Any]:
        return point_geometry(self.lng, self.lat)


_IDLE = PinSnapshot(PinState.IDLE)
_UNCOMMITTED_STATES = {PinState.PLACING, PinState.RESOLVING, PinState.CANDIDATE}


class PinSession:
    def __init__(
        self,
        client: GeocodingClient,
        *,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        request_timeout: float = 10.0,
        on_change: Optional[Callable[[PinSnapshot], None]] = None,
        on_commit: Optional[Callable[[PinCommit], None]] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.request_timeout = request_timeout
        self.on_change = on_change
        self.on_commit = on_commit
        self._sleep = sleep
        self._snapshot = _IDLE
        self._committed: Optional[PinCommit] = None
        self._generation = 0
        self._inflight: Optional[asyncio.Task[GeocodeResult]] = None

    @classmethod
    def from_settings(
        cls,
        client: GeocodingClient,
        settings: Optional[Settings] = None,
        **kwargs: Any,
    ) -> "PinSession":
        cfg = settings or default_settings
        kwargs.setdefault("retry_attempts", cfg.pin_retry_attempts)
        kwargs.setdefault("retry_delay", cfg.pin_retry_delay_seconds)
        kwargs.setdefault("request_timeout", cfg.pin_request_timeout_seconds)
        return cls(client, **kwargs)

    @property
    def snapshot(self) -> PinSnapshot:
        return self._snapshot

    @property
    def state(self) -> PinState:
        return self._snapshot.state

    @property
    def committed(self) -> Optional[PinCommit]:
        return self._committed

    @property
    def generation(self) -> int:
        return self._generation

    # ------------------------------------------------------------------ gestures

    def begin(self, lat: float, lng: float) -> bool:
        """Place the optimistic marker. Returns False (and changes nothing) for bad coordinates."""
        if not is_valid_lat_lng(lat, lng):
            logger.debug(
                "Ignoring pin outside coordinate bounds",
                extra={"event": "pin_out_of_range", "lat": lat, "lng": lng},
            )
            return False
        self._supersede()
        self._transition(PinSnapshot(PinState.PLACING, coordinates=(float(lng), float(lat))))
        return True

    async def place(self, lat: float, lng: float) -> PinSnapshot:
        """Map click: optimistic placement followed by address resolution."""
        if not self.begin(lat, lng):
            return self._snapshot

        generation = self._generation
        placing = self._snapshot
        self._transition(replace(placing, state=PinState.RESOLVING))

        task = asyncio.get_running_loop().create_task(
            self._reverse_with_retry(generation, float(lat), float(lng))
        )
        self._inflight = task
        try:
            result = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                return self._snapshot
            self._generation += 1
            self._transition(_IDLE)
            raise
        finally:
            if self._inflight is task:
                self._inflight = None

        if generation != self._generation:
            logger.debug(
                "Dropping reverse geocode for superseded pin",
                extra={"event": "pin_stale_result", "generation": generation},
            )
            return self._snapshot

        candidate = self._candidate_from(placing, result)
        self._transition(candidate)
        return candidate

    async def drag_to(self, lat: float, lng: float) -> PinSnapshot:
        """Marker drag end; same lifecycle as a click."""
        return await self.place(lat, lng)

    def confirm(self) -> PinCommit:
        snapshot = self._snapshot
        if snapshot.state is not PinState.CANDIDATE:
            raise InvalidPinTransition("confirm", snapshot.state.value)
        assert snapshot.coordinates is not None and snapshot.address is not None
        assert snapshot.source is not None
        return self._commit(snapshot.coordinates, snapshot.address, snapshot.source)

    def cancel(self) -> PinSnapshot:
        """Discard the uncommitted marker. The last committed location is kept."""
        if self._snapshot.state not in _UNCOMMITTED_STATES:
            return self._snapshot
        self._supersede()
        self._transition(_IDLE)
        return self._snapshot

    def set_location(self, lat: float, lng: float, address: Optional[str]) -> Optional[PinCommit]:
        """Non-interactive placement for a location whose address is already known."""
        if not is_valid_lat_lng(lat, lng):
            logger.warning(
                "Invalid coordinates received for placement",
                extra={"event": "pin_out_of_range", "lat": lat, "lng": lng},
            )
            return None
        self._supersede()
        label = (address or "").strip()
        source = AddressSource.RESOLVED if label else AddressSource.FALLBACK_COORDS_ONLY
        return self._commit(
            (float(lng), float(lat)), label or coordinate_label(lat, lng), source
        )

    async def search_and_set_location(self, address: str) -> bool:
        """Forward-geocode ``address`` and place it. Returns False when nothing was placed."""
        if not isinstance(address, str) or not address.strip():
            return False
        self._supersede()
        generation = self._generation

        async def _attempt() -> GeocodeResult:
            return await self._with_timeout(self.client.forward_geocode(address))

        result = await retry_geocode(
            "forward_geocode",
            _attempt,
            max_attempts=self.retry_attempts,
            delay=linear_backoff(self.retry_delay),
            sleep=self._sleep,
            should_continue=lambda: generation == self._generation,
        )
        if generation != self._generation:
            return False
        if not result.success or result.coordinates is None:
            logger.warning(
                "Failed to geocode address for pin placement",
                extra={"event": "pin_search_failed", "error_kind": result.error_kind.value},
            )
            return False
        lng, lat = result.coordinates
        return self.set_location(lat, lng, result.formatted_address) is not None

    async def aclose(self) -> None:
        self._supersede()
        self._snapshot = _IDLE

    # ------------------------------------------------------------------ internals

    async def _reverse_with_retry(self, generation: int, lat: float, lng: float) -> GeocodeResult:
        async def _attempt() -> GeocodeResult:
            return await self._with_timeout(self.client.reverse_geocode(lat, lng))

        return await retry_geocode(
            "reverse_geocode",
            _attempt,
            max_attempts=self.retry_attempts,
            delay=linear_backoff(self.retry_delay),
            sleep=self._sleep,
            should_continue=lambda: generation == self._generation,
        )

    async def _with_timeout(self, call: Any) -> GeocodeResult:
        try:
            return await asyncio.wait_for(call, timeout=self.request_timeout)
        except asyncio.TimeoutError:
            return GeocodeResult(
                success=False,
                error_kind=GeocodeErrorKind.TIMEOUT,
                error_message=f"Geocoding request timed out after {self.request_timeout}s",
            )

    def _candidate_from(self, placing: PinSnapshot, result: GeocodeResult) -> PinSnapshot:
        if result.success and result.formatted_address:
            return replace(
                placing,
                state=PinState.CANDIDATE,
                address=result.formatted_address,
                source=AddressSource.RESOLVED,
            )
        lat, lng = placing.lat, placing.lng
        assert lat is not None and lng is not None
        logger.warning(
            "Reverse geocoding failed; offering coordinates only",
            extra={
                "event": "pin_fallback_coords_only",
                "error_kind": result.error_kind.value,
                "error": result.error_message,
            },
        )
        return replace(
            placing,
            state=PinState.CANDIDATE,
            address=coordinate_label(lat, lng),
            source=AddressSource.FALLBACK_COORDS_ONLY,
            error_kind=result.error_kind,
        )

    def _commit(self, coordinates: Coordinates, address: str, source: AddressSource) -> PinCommit:
        commit = PinCommit(coordinates=coordinates, address=address, source=source)
        self._committed = commit
        self._transition(
            PinSnapshot(
                PinState.CONFIRMED, coordinates=coordinates, address=address, source=source
            )
        )
        logger.info(
            "Pin location confirmed",
            extra={
                "event": "pin_confirmed",
                "lat": commit.lat,
                "lng": commit.lng,
                "source": source.value,
            },
        )
        if self.on_commit is not None:
            self.on_commit(commit)
        return commit

    def _supersede(self) -> None:
        self._generation += 1
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

    def _transition(self, snapshot: PinSnapshot) -> None:
        previous = self._snapshot.state
        self._snapshot = snapshot
        logger.debug(
            "Pin state %s -> %s",
            previous.value,
            snapshot.state.value,
            extra={"event": "pin_transition", "generation": self._generation},
        )
        if self.on_change is not None:
            self.on_change(snapshot)
