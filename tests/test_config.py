import pytest
from pydantic import ValidationError

from core.config import DEFAULT_CITIES, RealtimeSettings, Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("REALTIME__PRODUCER_ENABLED", raising=False)
    s = Settings(_env_file=None)
    assert s.realtime.cities == DEFAULT_CITIES
    assert s.realtime.initial_delay == 5.0
    assert s.realtime.inter_topic_delay == 1.0
    assert s.realtime.poll_interval == 30.0
    assert s.realtime.producer_enabled is True
    assert s.weather.timeout == 5.0
    assert s.weather.max_retries == 0
    assert s.PORT == 8080


def test_api_key_is_required(monkeypatch):
    monkeypatch.delenv("WEATHER__API_KEY", raising=False)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


@pytest.mark.parametrize("raw", ['["Oslo", "Lima"]', "Oslo, Lima", "Oslo,Lima,Oslo,"])
def test_cities_from_env(monkeypatch, raw):
    monkeypatch.setenv("REALTIME__CITIES", raw)
    s = Settings(_env_file=None)
    assert s.realtime.cities == ["Oslo", "Lima"]


def test_nested_overrides(monkeypatch):
    monkeypatch.setenv("REALTIME__POLL_INTERVAL", "2.5")
    monkeypatch.setenv("WEATHER__TIMEOUT", "1")
    s = Settings(_env_file=None)
    assert s.realtime.poll_interval == 2.5
    assert s.weather.timeout == 1.0


def test_single_city_string():
    assert RealtimeSettings(cities="Cairo").cities == ["Cairo"]
