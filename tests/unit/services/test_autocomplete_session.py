import asyncio
from typing import Optional

import pytest

from geopin.core.config import Settings
from geopin.services.autocomplete_session import (
    CONNECTION_MESSAGE,
    TIMEOUT_MESSAGE,
    AutocompleteSession,
    AutocompleteStatus,
    LocationFields,
)
from geopin.services.geocoding import (
    AutocompleteResult,
    GeocodeErrorKind,
    MockGeocodingClient,
    Suggestion,
)
from geopin.services.pin_session import PinSession, PinState


def _suggestions(*addresses: str) -> AutocompleteResult:
    return AutocompleteResult(
        success=True,
        suggestions=tuple(
            Suggestion(address=a, coordinates=(float(i), float(i)), country="India")
            for i, a in enumerate(addresses, start=1)
        ),
    )


def _failure(kind: GeocodeErrorKind) -> AutocompleteResult:
    return AutocompleteResult(success=False, error_kind=kind, error_message=kind.value)


class ScriptedAutocomplete(MockGeocodingClient):
    def __init__(self, *results: AutocompleteResult) -> None:
        self.results = list(results)
        self.requests: list[tuple[str, Optional[str]]] = []

    async def autocomplete(self, query, limit=5, country_bias=None):
        self.requests.append((query, country_bias))
        return self.results.pop(0)


class GatedAutocomplete(MockGeocodingClient):
    """Each query blocks until its gate is released."""

    def __init__(self) -> None:
        self.started: dict[str, asyncio.Event] = {}
        self.gates: dict[str, asyncio.Event] = {}

    def _event(self, table: dict[str, asyncio.Event], query: str) -> asyncio.Event:
        return table.setdefault(query, asyncio.Event())

    async def autocomplete(self, query, limit=5, country_bias=None):
        self._event(self.started, query).set()
        await self._event(self.gates, query).wait()
        return _suggestions(f"{query} result")


class HangingAutocomplete(MockGeocodingClient):
    def __init__(self) -> None:
        self.calls = 0

    async def autocomplete(self, query, limit=5, country_bias=None):
        self.calls += 1
        await asyncio.sleep(10)
        return _suggestions("never")


def _session(client, **kwargs) -> AutocompleteSession:
    kwargs.setdefault("delay", 0)
    return AutocompleteSession(client, **kwargs)


@pytest.mark.asyncio
async def test_rate_limit_then_success_shows_one_cycle(sleep_recorder):
    client = ScriptedAutocomplete(
        _failure(GeocodeErrorKind.RATE_LIMITED),
        _suggestions("Baker Street, London", "Baker Road, Leeds"),
    )
    session = _session(client, sleep=sleep_recorder)

    session.on_input("Baker")
    await session.wait_idle()

    state = session.state
    assert state.pending is False
    assert state.status is AutocompleteStatus.READY
    assert [s.address for s in state.suggestions] == ["Baker Street, London", "Baker Road, Leeds"]
    assert state.displays == 1
    assert state.visible is True
    assert state.cursor == -1
    assert sleep_recorder.calls == [1.0]
    assert [q for q, _ in client.requests] == ["Baker", "Baker"]


@pytest.mark.asyncio
async def test_stale_response_is_never_displayed():
    client = GatedAutocomplete()
    session = _session(client)

    session.on_input("Baker")
    await asyncio.wait_for(client._event(client.started, "Baker").wait(), timeout=1)
    session.on_input("Bakery")
    await asyncio.wait_for(client._event(client.started, "Bakery").wait(), timeout=1)

    client._event(client.gates, "Baker").set()
    await asyncio.sleep(0.01)
    assert session.state.suggestions == ()
    assert session.state.pending is True

    client._event(client.gates, "Bakery").set()
    await session.wait_idle()

    assert [s.address for s in session.suggestions] == ["Bakery result"]
    assert session.state.query == "Bakery"


@pytest.mark.asyncio
async def test_typing_burst_issues_one_request():
    client = ScriptedAutocomplete(_suggestions("Kalinga Stadium"))
    session = _session(client, delay=0.01)

    for text in ("Ka", "Kal", "Kali", " Kalinga "):
        session.on_input(text)
    await session.wait_idle()

    assert client.requests == [("Kalinga", None)]
    assert session.state.status is AutocompleteStatus.READY


@pytest.mark.asyncio
async def test_short_query_clears_without_request():
    client = ScriptedAutocomplete(_suggestions("Baker Street"))
    session = _session(client)
    session.on_input("Baker")
    await session.wait_idle()

    session.on_input("B")
    await session.wait_idle()

    assert session.suggestions == ()
    assert session.state.status is AutocompleteStatus.IDLE
    assert len(client.requests) == 1


@pytest.mark.asyncio
async def test_two_character_query_reports_no_results(mock_geocoder):
    session = _session(mock_geocoder)

    session.on_input("Ka")
    await session.wait_idle()

    assert session.state.status is AutocompleteStatus.NO_RESULTS
    assert session.state.error_message is None


@pytest.mark.asyncio
async def test_empty_result_is_no_results_not_error():
    session = _session(ScriptedAutocomplete(AutocompleteResult(success=True)))

    session.on_input("Zzzz")
    await session.wait_idle()

    assert session.state.status is AutocompleteStatus.NO_RESULTS


@pytest.mark.asyncio
async def test_exhausted_retries_surface_error(sleep_recorder):
    client = ScriptedAutocomplete(*[_failure(GeocodeErrorKind.NETWORK_ERROR)] * 3)
    errors = []
    session = _session(client, sleep=sleep_recorder, on_error=errors.append)

    session.on_input("Baker")
    await session.wait_idle()

    assert session.state.status is AutocompleteStatus.ERROR
    assert session.state.error_message == CONNECTION_MESSAGE
    assert session.state.pending is False
    assert errors == [CONNECTION_MESSAGE]
    assert sleep_recorder.calls == [1.0, 2.0]

    session.dismiss_error()
    assert session.state.status is AutocompleteStatus.IDLE
    assert session.state.error_message is None


@pytest.mark.asyncio
async def test_timeout_is_an_error_and_not_retried(sleep_recorder):
    client = HangingAutocomplete()
    session = _session(client, request_timeout=0.01, sleep=sleep_recorder)

    session.on_input("Baker")
    await session.wait_idle()

    assert session.state.status is AutocompleteStatus.ERROR
    assert session.state.error_message == TIMEOUT_MESSAGE
    assert client.calls == 1
    assert sleep_recorder.calls == []


@pytest.mark.asyncio
async def test_country_bias_comes_from_country_field():
    client = ScriptedAutocomplete(_suggestions("A"), _suggestions("B"))
    fields = LocationFields(country="IN")
    session = _session(client, fields=fields)

    session.on_input("Kalinga")
    await session.wait_idle()
    session.country_bias = lambda: "gb"
    session.on_input("Baker")
    await session.wait_idle()

    assert client.requests == [("Kalinga", "in"), ("Baker", "gb")]


@pytest.mark.asyncio
async def test_cursor_wraps_in_both_directions(mock_geocoder):
    session = _session(mock_geocoder)
    session.on_input("Kalinga")
    await session.wait_idle()
    assert len(session.suggestions) == 3

    assert session.move_selection(-1) == 2
    assert session.move_selection(1) == 0
    assert session.move_selection(1) == 1
    assert session.move_selection(1) == 2
    assert session.move_selection(1) == 0

    session.set_active_index(1)
    assert session.state.active == session.suggestions[1]
    session.set_active_index(7)
    assert session.state.cursor == 1


@pytest.mark.asyncio
async def test_selecting_twice_yields_same_fields(mock_geocoder):
    fields = LocationFields()
    pin = PinSession(mock_geocoder)
    selected = []
    session = _session(mock_geocoder, fields=fields, pin_session=pin, on_select=selected.append)
    session.on_input("Kalinga")
    await session.wait_idle()

    await session.select(0)
    first = (fields.address, fields.country, fields.latitude, fields.longitude)
    first_commit = pin.committed
    await session.select(0)
    second = (fields.address, fields.country, fields.latitude, fields.longitude)

    assert first == second
    assert first == (
        "Kalinga Stadium, Nayapalli, Bhubaneswar 751012, India",
        "India",
        20.2886,
        85.8225,
    )
    assert pin.state is PinState.CONFIRMED
    assert pin.committed == first_commit
    assert len(selected) == 2
    assert session.state.visible is False
    assert session.state.cursor == -1


@pytest.mark.asyncio
async def test_selection_only_fills_empty_fields(mock_geocoder):
    fields = LocationFields(country="Preset", latitude=1.0, longitude=2.0)
    session = _session(mock_geocoder, fields=fields)
    session.on_input("Baker")
    await session.wait_idle()

    await session.select(1)

    assert fields.address == "221B Baker St, London, UK"
    assert fields.country == "Preset"
    assert (fields.latitude, fields.longitude) == (1.0, 2.0)


@pytest.mark.asyncio
async def test_suggestion_without_coordinates_is_geocoded_for_pin(mock_geocoder):
    pin = PinSession(mock_geocoder)
    session = _session(mock_geocoder, pin_session=pin)
    session.on_input("Needs Fallback")
    await session.wait_idle()

    session.set_active_index(2)
    chosen = await session.select_current()

    assert chosen is not None and chosen.coordinates is None
    assert pin.state is PinState.CONFIRMED
    assert pin.committed is not None
    assert pin.committed.coordinates == (85.8246, 20.296)
    assert (session.fields.longitude, session.fields.latitude) == pin.committed.coordinates


@pytest.mark.asyncio
async def test_select_current_without_cursor_does_nothing(mock_geocoder):
    session = _session(mock_geocoder)
    session.on_input("Kalinga")
    await session.wait_idle()

    assert await session.select_current() is None
    assert await session.select(10) is None
    assert session.fields.address == ""


@pytest.mark.asyncio
async def test_hide_and_focus(mock_geocoder):
    session = _session(mock_geocoder)
    session.on_input("Kalinga")
    await session.wait_idle()

    session.hide()
    assert session.state.visible is False
    assert session.move_selection(1) == -1

    session.on_focus()
    assert session.state.visible is True


@pytest.mark.asyncio
async def test_detach_cancels_pending_work():
    client = GatedAutocomplete()
    session = _session(client)
    session.on_input("Baker")
    await asyncio.wait_for(client._event(client.started, "Baker").wait(), timeout=1)

    await session.detach()
    session.on_input("Bakery")

    assert session.detached is True
    assert session.state.query == ""
    assert session.suggestions == ()
    assert "Bakery" not in client.started


def test_from_settings_uses_configured_values(mock_geocoder):
    settings = Settings(autocomplete_debounce_ms=150, autocomplete_max_retries=1)

    session = AutocompleteSession.from_settings(mock_geocoder, settings)

    assert session.min_length == 2
    assert session.max_retries == 1
    assert session.request_timeout == 8.0


@pytest.mark.asyncio
async def test_selecting_another_suggestion_replaces_filled_coordinates(mock_geocoder):
    fields = LocationFields()
    pin = PinSession(mock_geocoder)
    session = _session(mock_geocoder, fields=fields, pin_session=pin)
    session.on_input("Kalinga")
    await session.wait_idle()

    await session.select(0)
    await session.select(1)

    assert fields.address == "221B Baker St, London, UK"
    assert pin.committed is not None
    assert (fields.longitude, fields.latitude) == pin.committed.coordinates == (-0.1586, 51.5237)


@pytest.mark.asyncio
async def test_user_edited_coordinates_survive_later_selection(mock_geocoder):
    fields = LocationFields()
    session = _session(mock_geocoder, fields=fields)
    session.on_input("Kalinga")
    await session.wait_idle()

    await session.select(0)
    fields.latitude, fields.longitude = 10.5, 20.5
    await session.select(1)

    assert fields.address == "221B Baker St, London, UK"
    assert (fields.latitude, fields.longitude) == (10.5, 20.5)
