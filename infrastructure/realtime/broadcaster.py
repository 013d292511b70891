"""Best-effort fan-out of outbound events to registered connections.

Each broadcast serializes its payload once; every recipient gets the same
string. Recipients are written to concurrently and each write is bounded
by ``send_timeout``, so one slow or dead transport never holds up the
others. Send failures are logged and swallowed here and never reach the
caller.
"""
from __future__ import annotations

import asyncio
from typing import Iterable, Union

from application.ports.realtime import Connection, OutboundEvent
from core.logging_config import get_logger
from infrastructure.realtime.connection_registry import ConnectionRegistry


logger = get_logger(__name__)

Message = Union[OutboundEvent, str]


def serialize(message: Message) -> str:
    if isinstance(message, str):
        return message
    return message.to_json()


class BroadcastEngine:
    def __init__(self, registry: ConnectionRegistry, *, send_timeout: float = 5.0) -> None:
        self._registry = registry
        self._send_timeout = send_timeout

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    async def send_to(self, conn: Connection, message: Message) -> bool:
        """Write one message to one connection. Returns True if written."""
        if not conn.is_open:
            logger.debug("ws_send_skipped_closed", connection_id=conn.id)
            return False
        payload = serialize(message)
        try:
            await asyncio.wait_for(conn.send_text(payload), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            logger.warning("ws_send_timeout", connection_id=conn.id, timeout=self._send_timeout)
            return False
        except Exception as exc:
            logger.warning("ws_send_failed", connection_id=conn.id, error=str(exc))
            return False
        return True

    async def broadcast_all(self, message: Message) -> int:
        targets = await self._registry.snapshot_open_connections()
        return await self._fan_out(targets, message)

    async def broadcast_to_topic(self, topic: str, message: Message) -> int:
        targets = await self._registry.subscribers_of(topic)
        return await self._fan_out(targets, message)

    async def _fan_out(self, targets: Iterable[Connection], message: Message) -> int:
        targets = list(targets)
        if not targets:
            return 0
        payload = serialize(message)
        results = await asyncio.gather(*(self.send_to(conn, payload) for conn in targets))
        return sum(1 for ok in results if ok)
