"""
天气领域实体
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class WeatherRecord:
    """Current conditions for one city as reported by a data source."""

    city: str
    temperature: float  # °C
    description: str
    humidity: int  # %
    wind_speed: float  # kph
