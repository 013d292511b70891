"""WeatherAPI.com client implementing the WeatherDataSource port."""
from __future__ import annotations

from typing import Any, Optional

import httpx

from core.logging_config import get_logger
from domain.common.exceptions import WeatherFetchError
from domain.weather.entity import WeatherRecord

from .base import APIError, BaseAPIClient, extract_error_message


logger = get_logger(__name__)


class WeatherApiClient(BaseAPIClient):
    """Fetch current conditions from ``{base_url}/current.json``."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "http://api.weatherapi.com/v1",
        timeout: float = 5.0,
        max_retries: int = 0,
        retry_delay: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        debug: bool = False,
    ):
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            transport=transport,
            debug=debug,
        )
        self._api_key = api_key

    async def fetch(self, city: str) -> WeatherRecord:
        """
        Raises:
            WeatherFetchError: network/timeout failure, non-2xx status, an
                upstream-reported error, or a body without usable data.
        """
        try:
            response = await self.get("current.json", params={"key": self._api_key, "q": city, "aqi": "no"})
        except APIError as exc:
            reason = exc.message
            if exc.status_code:
                reason = f"HTTP error: {exc.status_code}"
                if exc.message and not exc.message.startswith("HTTP error"):
                    reason = f"{reason} ({exc.message})"
            raise WeatherFetchError(city, reason) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise WeatherFetchError(city, "response is not valid JSON") from exc

        if isinstance(body, dict) and "error" in body:
            message = extract_error_message(body) or "unknown error"
            raise WeatherFetchError(city, f"API error: {message}")

        record = self.parse_current(city, body)
        logger.debug("weather_fetched", city=city, temperature=record.temperature, elapsed_ms=round(response.elapsed_ms, 1))
        return record

    @staticmethod
    def parse_current(city: str, body: Any) -> WeatherRecord:
        """Map a ``current.json`` body onto a WeatherRecord."""
        current = body.get("current") if isinstance(body, dict) else None
        if not isinstance(current, dict):
            raise WeatherFetchError(city, "data structure error: missing 'current'")
        try:
            condition = current.get("condition") or {}
            return WeatherRecord(
                city=city,
                temperature=float(current["temp_c"]),
                description=str(condition["text"]),
                humidity=int(current["humidity"]),
                wind_speed=float(current["wind_kph"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise WeatherFetchError(city, f"data structure error: {exc!r}") from exc
