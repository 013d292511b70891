"""
API依赖项 - 从 app.state 取出 lifespan 中构建的实时组件
"""
from fastapi import Request
from starlette.requests import HTTPConnection

from application.services.realtime_service import RealtimeService


def realtime_from_connection(conn: HTTPConnection) -> RealtimeService:
    svc = getattr(conn.app.state, "realtime_service", None)
    if svc is None:
        raise RuntimeError("Realtime service not initialized. Ensure lifespan sets app.state.realtime_service.")
    return svc


def get_realtime_service(request: Request) -> RealtimeService:
    return realtime_from_connection(request)

