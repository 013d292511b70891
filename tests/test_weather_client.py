import httpx
import pytest

from domain.common.exceptions import WeatherFetchError
from infrastructure.external.api_clients import WeatherApiClient


pytestmark = pytest.mark.asyncio


CURRENT_OK = {
    "location": {"name": "Tokyo"},
    "current": {
        "temp_c": 18.3,
        "condition": {"text": "Partly cloudy"},
        "humidity": 64,
        "wind_kph": 14.8,
    },
}


def _client(handler, **kwargs) -> WeatherApiClient:
    return WeatherApiClient("secret", transport=httpx.MockTransport(handler), **kwargs)


async def test_fetch_parses_current_conditions():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json=CURRENT_OK)

    async with _client(handler) as client:
        record = await client.fetch("New York")

    assert record.city == "New York"
    assert record.temperature == 18.3
    assert record.description == "Partly cloudy"
    assert record.humidity == 64
    assert record.wind_speed == 14.8
    assert seen["url"].path == "/v1/current.json"
    assert seen["url"].params["q"] == "New York"
    assert seen["url"].params["key"] == "secret"
    assert seen["url"].params["aqi"] == "no"


async def test_upstream_reported_error_in_body():
    def handler(request):
        return httpx.Response(200, json={"error": {"code": 1006, "message": "No matching location found."}})

    async with _client(handler) as client:
        with pytest.raises(WeatherFetchError) as exc_info:
            await client.fetch("Atlantis")

    assert exc_info.value.city == "Atlantis"
    assert exc_info.value.reason == "API error: No matching location found."


async def test_non_2xx_status():
    def handler(request):
        return httpx.Response(503, text="unavailable")

    async with _client(handler) as client:
        with pytest.raises(WeatherFetchError) as exc_info:
            await client.fetch("Dubai")

    assert "503" in exc_info.value.reason


async def test_client_error_status_carries_upstream_message():
    def handler(request):
        return httpx.Response(401, json={"error": {"code": 2006, "message": "API key is invalid."}})

    async with _client(handler) as client:
        with pytest.raises(WeatherFetchError) as exc_info:
            await client.fetch("London")

    assert "401" in exc_info.value.reason
    assert "API key is invalid." in exc_info.value.reason


async def test_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(WeatherFetchError) as exc_info:
            await client.fetch("Paris")

    assert "Network error" in exc_info.value.reason


async def test_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with _client(handler, timeout=0.5) as client:
        with pytest.raises(WeatherFetchError) as exc_info:
            await client.fetch("Paris")

    assert "timeout" in exc_info.value.reason.lower()


@pytest.mark.parametrize("body", [
    {"location": {}},
    {"current": {"temp_c": "hot", "condition": {"text": "x"}, "humidity": 1, "wind_kph": 1}},
    {"current": {"temp_c": 1.0, "humidity": 1, "wind_kph": 1}},
])
async def test_malformed_body(body):
    def handler(request):
        return httpx.Response(200, json=body)

    async with _client(handler) as client:
        with pytest.raises(WeatherFetchError) as exc_info:
            await client.fetch("Sydney")

    assert "data structure error" in exc_info.value.reason


async def test_no_retry_by_default():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    async with _client(handler) as client:
        with pytest.raises(WeatherFetchError):
            await client.fetch("London")

    assert len(calls) == 1


async def test_retries_transient_errors_when_enabled():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(502)
        return httpx.Response(200, json=CURRENT_OK)

    async with _client(handler, max_retries=2, retry_delay=0.01) as client:
        record = await client.fetch("Tokyo")

    assert len(calls) == 3
    assert record.temperature == 18.3
