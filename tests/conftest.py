"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import asyncio
import json
import os

# Mandatory upstream key for settings validation
os.environ.setdefault("WEATHER__API_KEY", "test-api-key")
# Never hit the real upstream from tests
os.environ.setdefault("REALTIME__PRODUCER_ENABLED", "false")

import pytest  # noqa: E402

from domain.common.exceptions import WeatherFetchError  # noqa: E402
from domain.weather.entity import WeatherRecord  # noqa: E402


class FakeConnection:
    """In-memory stand-in for a WebSocket connection."""

    def __init__(self, conn_id: str, *, fail: bool = False, delay: float = 0.0):
        self.id = conn_id
        self.is_open = True
        self.fail = fail
        self.delay = delay
        self.sent: list[str] = []

    async def send_text(self, text: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("broken pipe")
        self.sent.append(text)

    def messages(self) -> list[dict]:
        return [json.loads(t) for t in self.sent]

    def of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.messages() if m.get("type") == msg_type]

    def __repr__(self) -> str:
        return f"FakeConnection({self.id!r})"


class FakeWeatherSource:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls: list[str] = []

    async def fetch(self, city: str) -> WeatherRecord:
        self.calls.append(city)
        if city in self.failing:
            raise WeatherFetchError(city, "HTTP error: 503")
        return WeatherRecord(city=city, temperature=21.5, description="Sunny", humidity=40, wind_speed=12.3)


@pytest.fixture
def make_conn():
    def _make(conn_id: str = "c1", **kwargs) -> FakeConnection:
        return FakeConnection(conn_id, **kwargs)
    return _make


@pytest.fixture
def make_source():
    def _make(failing=()) -> FakeWeatherSource:
        return FakeWeatherSource(failing)
    return _make
