"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import RequestIDMiddleware
from api.routes import status as status_routes
from api.routes import ws as ws_routes
from application.services.realtime_service import RealtimeService
from application.services.update_producer import UpdateProducer
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from infrastructure.external.api_clients import WeatherApiClient
from infrastructure.realtime.broadcaster import BroadcastEngine
from infrastructure.realtime.connection_registry import ConnectionRegistry


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    rt_cfg = settings.realtime
    registry = ConnectionRegistry()
    broadcaster = BroadcastEngine(registry, send_timeout=rt_cfg.send_timeout)
    realtime = RealtimeService(
        registry=registry,
        broadcaster=broadcaster,
        cities=rt_cfg.cities,
        welcome_message=rt_cfg.welcome_message,
    )
    weather_client = WeatherApiClient(
        settings.weather.api_key or "",
        base_url=settings.weather.base_url,
        timeout=settings.weather.timeout,
        max_retries=settings.weather.max_retries,
        retry_delay=settings.weather.retry_delay,
        debug=settings.DEBUG,
    )
    producer = UpdateProducer(
        source=weather_client,
        broadcaster=broadcaster,
        registry=registry,
        cities=rt_cfg.cities,
        initial_delay=rt_cfg.initial_delay,
        inter_topic_delay=rt_cfg.inter_topic_delay,
        poll_interval=rt_cfg.poll_interval,
    )
    app.state.realtime_service = realtime
    app.state.update_producer = producer
    logger.info("realtime_initialized", cities=rt_cfg.cities)

    if rt_cfg.producer_enabled:
        producer.start()
    else:
        logger.info("producer_disabled")

    yield

    # 关闭时的清理工作
    await producer.stop()
    await weather_client.close()
    await registry.clear()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Real-time weather relay over WebSocket",
)

app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(ws_routes.router)
app.include_router(status_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "websocket": "/ws/weather",
            "docs": "/docs",
        },
        message="Real-Time Weather Server",
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return success_response(data={"status": "healthy"})


if __name__ == "__main__":
    import uvicorn
    logger.info("server_starting", url=f"ws://{settings.HOST}:{settings.PORT}/ws/weather")
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
