"""WebSocket route for live weather updates.

One coroutine per connection: it owns the receive loop and hands each
text frame to RealtimeService. Whatever ends the loop (client
disconnect, transport error) unregisters the connection in ``finally``.
"""
from __future__ import annotations

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from application.services.realtime_service import RealtimeService
from core.logging_config import get_logger
from infrastructure.realtime.websocket_connection import WebSocketConnection
from api.dependencies import realtime_from_connection


logger = get_logger(__name__)


router = APIRouter(prefix="/ws", tags=["WebSocket"])


@router.websocket("/weather")
async def weather_websocket(ws: WebSocket) -> None:
    rt: RealtimeService = realtime_from_connection(ws)
    await ws.accept()
    conn = WebSocketConnection(ws)
    structlog.contextvars.bind_contextvars(connection_id=conn.id)
    await rt.connect(conn)
    failed = False
    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                logger.info("ws_client_closed", code=message.get("code"))
                break
            text = message.get("text")
            if text is None and message.get("bytes") is not None:
                text = message["bytes"]
            if text is None:
                continue
            await rt.handle_message(conn, text)
    except WebSocketDisconnect as exc:
        logger.info("ws_client_closed", code=exc.code)
    except Exception as exc:
        failed = True
        await rt.on_error(conn, exc)
    finally:
        if not failed:
            await rt.disconnect(conn)
        structlog.contextvars.unbind_contextvars("connection_id")
