"""
Realtime port and message DTOs (contracts-first).

This module defines the wire messages exchanged over the weather
WebSocket and the Connection / WeatherDataSource protocols, so the
application layer stays decoupled from Starlette and from the concrete
upstream HTTP client (infrastructure).

Inbound and outbound messages are tagged unions on ``type``; inbound
frames are decoded exactly once, at the boundary, by ``decode_inbound``.
"""
from __future__ import annotations

import time
from typing import Annotated, Literal, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from domain.common.exceptions import MessageDecodeError
from domain.weather.entity import WeatherRecord


def now_ms() -> int:
    """Server time as epoch milliseconds."""
    return int(time.time() * 1000)


# -------------------- Inbound (client -> server) --------------------

class _Inbound(BaseModel):
    # unknown fields are ignored
    model_config = ConfigDict(extra="ignore", frozen=True)


class SubscribeMessage(_Inbound):
    type: Literal["subscribe"]
    city: Optional[str] = None


class UnsubscribeMessage(_Inbound):
    type: Literal["unsubscribe"]
    city: Optional[str] = None


class PingMessage(_Inbound):
    type: Literal["ping"]


InboundMessage = Annotated[
    Union[SubscribeMessage, UnsubscribeMessage, PingMessage],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def decode_inbound(raw: str | bytes) -> SubscribeMessage | UnsubscribeMessage | PingMessage:
    """Decode one inbound text frame.

    Raises:
        MessageDecodeError: non-JSON text, a non-object payload, a missing
            or unrecognized ``type``, or a wrongly typed field.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MessageDecodeError("frame is not valid UTF-8") from exc
    try:
        return _inbound_adapter.validate_json(raw)
    except ValidationError as exc:
        errors = exc.errors()
        first = errors[0] if errors else {}
        reason = first.get("msg") or "validation failed"
        loc = ".".join(str(p) for p in first.get("loc", ()))
        if loc:
            reason = f"{loc}: {reason}"
        raise MessageDecodeError(reason, raw=raw) from exc


# -------------------- Outbound (server -> client) --------------------

class _Outbound(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_json(self) -> str:
        """Serialize with wire field names."""
        return self.model_dump_json(by_alias=True)


class WelcomeEvent(_Outbound):
    type: Literal["welcome"] = "welcome"
    message: str
    server_time: int = Field(default_factory=now_ms, alias="serverTime")
    available_cities: dict[str, str] = Field(default_factory=dict, alias="availableCities")

    @classmethod
    def for_cities(cls, message: str, cities: list[str]) -> "WelcomeEvent":
        return cls(message=message, available_cities={c: c for c in cities})


class SubscriptionConfirmedEvent(_Outbound):
    type: Literal["subscriptionConfirmed"] = "subscriptionConfirmed"
    city: str
    subscribed: bool = True


class PongEvent(_Outbound):
    type: Literal["pong"] = "pong"
    timestamp: int = Field(default_factory=now_ms)


class WeatherUpdateEvent(_Outbound):
    type: Literal["weatherUpdate"] = "weatherUpdate"
    city: str
    temperature: float
    description: str
    humidity: int
    wind_speed: float = Field(alias="windSpeed")
    timestamp: int = Field(default_factory=now_ms)

    @classmethod
    def from_record(cls, record: WeatherRecord) -> "WeatherUpdateEvent":
        return cls(
            city=record.city,
            temperature=record.temperature,
            description=record.description,
            humidity=record.humidity,
            wind_speed=record.wind_speed,
        )


class HeartbeatEvent(_Outbound):
    type: Literal["heartbeat"] = "heartbeat"
    total_clients: int
    cities_monitored: int
    timestamp: int = Field(default_factory=now_ms)


OutboundEvent = Union[
    WelcomeEvent,
    SubscriptionConfirmedEvent,
    PongEvent,
    WeatherUpdateEvent,
    HeartbeatEvent,
]


# -------------------- Ports --------------------

class Connection(Protocol):
    """One open bidirectional message transport.

    Implementations must be hashable by identity; the registry keys on them.
    """

    @property
    def id(self) -> str: ...

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, text: str) -> None: ...


class WeatherDataSource(Protocol):
    """Produces one current-conditions record per city on demand.

    ``fetch`` raises WeatherFetchError on any failure; callers never retry.
    """

    async def fetch(self, city: str) -> WeatherRecord: ...


__all__ = [
    "now_ms",
    "SubscribeMessage",
    "UnsubscribeMessage",
    "PingMessage",
    "InboundMessage",
    "decode_inbound",
    "WelcomeEvent",
    "SubscriptionConfirmedEvent",
    "PongEvent",
    "WeatherUpdateEvent",
    "HeartbeatEvent",
    "OutboundEvent",
    "Connection",
    "WeatherDataSource",
]
