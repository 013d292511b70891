"""Starlette WebSocket adapter for the Connection port."""
from __future__ import annotations

import uuid

from fastapi import WebSocket
from starlette.websockets import WebSocketState


class WebSocketConnection:
    """Wrap an accepted WebSocket with a stable id and open/closed status."""

    def __init__(self, ws: WebSocket, conn_id: str | None = None) -> None:
        self._ws = ws
        self._id = conn_id or uuid.uuid4().hex

    @property
    def id(self) -> str:
        return self._id

    @property
    def websocket(self) -> WebSocket:
        return self._ws

    @property
    def is_open(self) -> bool:
        return (
            self._ws.client_state == WebSocketState.CONNECTED
            and self._ws.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, text: str) -> None:
        await self._ws.send_text(text)

    def __repr__(self) -> str:
        return f"WebSocketConnection(id={self._id!r})"
