"""Application service for the per-connection WebSocket session.

A session has a single state, open. Entering it registers the connection
and sends the welcome; inbound control messages mutate the registry;
leaving it (disconnect or transport error) unregisters the connection.
Malformed input is logged and otherwise ignored: it never closes the
connection and never gets an error reply.
"""
from __future__ import annotations

from typing import List

from application.ports.realtime import (
    Connection,
    PingMessage,
    PongEvent,
    SubscribeMessage,
    SubscriptionConfirmedEvent,
    UnsubscribeMessage,
    WelcomeEvent,
    decode_inbound,
)
from core.logging_config import get_logger
from domain.common.exceptions import MessageDecodeError
from infrastructure.realtime.broadcaster import BroadcastEngine
from infrastructure.realtime.connection_registry import ConnectionRegistry


logger = get_logger(__name__)


class RealtimeService:
    def __init__(
        self,
        *,
        registry: ConnectionRegistry,
        broadcaster: BroadcastEngine,
        cities: List[str],
        welcome_message: str = "Connected to Real-Time Weather Server",
    ) -> None:
        self._registry = registry
        self._broadcaster = broadcaster
        self._cities = list(cities)
        self._welcome_message = welcome_message

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def cities(self) -> List[str]:
        return list(self._cities)

    # Connection lifecycle management
    async def connect(self, conn: Connection) -> None:
        """Register the connection and greet it with the known cities."""
        await self._registry.register(conn)
        welcome = WelcomeEvent.for_cities(self._welcome_message, self._cities)
        await self._broadcaster.send_to(conn, welcome)
        logger.info("ws_connected", connection_id=conn.id, total=await self._registry.size())

    async def disconnect(self, conn: Connection) -> None:
        await self._registry.unregister(conn)
        logger.info("ws_disconnected", connection_id=conn.id, remaining=await self._registry.size())

    async def on_error(self, conn: Connection, exc: BaseException) -> None:
        """Unrecoverable transport error: the session ends like a disconnect."""
        logger.error("ws_transport_error", connection_id=conn.id, error=str(exc))
        await self.disconnect(conn)

    # Inbound control messages
    async def handle_message(self, conn: Connection, raw: str | bytes) -> None:
        try:
            msg = decode_inbound(raw)
        except MessageDecodeError as exc:
            logger.warning("ws_message_invalid", connection_id=conn.id, reason=exc.reason, raw=(exc.details or {}).get("raw"))
            return

        if isinstance(msg, SubscribeMessage):
            await self._handle_subscribe(conn, msg.city)
        elif isinstance(msg, UnsubscribeMessage):
            await self._handle_unsubscribe(conn, msg.city)
        elif isinstance(msg, PingMessage):
            await self._broadcaster.send_to(conn, PongEvent())

    async def _handle_subscribe(self, conn: Connection, city: str | None) -> None:
        if city is None or not city.strip():
            logger.debug("ws_subscribe_ignored_blank", connection_id=conn.id)
            return
        if await self._registry.subscribe(conn, city):
            await self._broadcaster.send_to(conn, SubscriptionConfirmedEvent(city=city))

    async def _handle_unsubscribe(self, conn: Connection, city: str | None) -> None:
        if city is None:
            return
        await self._registry.unsubscribe(conn, city)
