"""Relay status endpoint."""
from fastapi import APIRouter, Depends

from application.services.realtime_service import RealtimeService
from api.dependencies import get_realtime_service
from core.response import success_response


router = APIRouter(prefix="/status", tags=["Status"])


@router.get("")
async def relay_status(rt: RealtimeService = Depends(get_realtime_service)):
    """Connected clients, monitored cities and per-city subscriber counts."""
    registry = rt.registry
    cities = rt.cities
    return success_response(
        data={
            "total_clients": await registry.size(),
            "cities_monitored": len(cities),
            "cities": cities,
            "subscriptions": await registry.topic_counts(),
        }
    )
