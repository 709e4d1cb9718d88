import asyncio

from fastapi.testclient import TestClient
import pytest

from geopin.main import create_app
from geopin.routes.v1.addresses import get_geocoding_client
from geopin.services.geocoding import MockGeocodingClient


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records delays instead of waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def mock_geocoder() -> MockGeocodingClient:
    return MockGeocodingClient()


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def client(app, mock_geocoder):
    app.dependency_overrides[get_geocoding_client] = lambda: mock_geocoder
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
