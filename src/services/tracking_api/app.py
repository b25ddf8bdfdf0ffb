# src/services/tracking_api/app.py
"""
FastAPI приложение трекинга партнёров доставки.

REST (/api/v1, заголовок X-Partner-Id):
- POST /partner/location, GET /partner/locations, GET /partner/profile,
  PATCH /partner/status, GET /partners/nearby
- GET /orders/available|active|history, PATCH /orders/{id}/accept|status
- GET /earnings/today|history

Служебные: GET /health, GET /stats. WebSocket: /ws.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any

from aio_pika.exceptions import AMQPError
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from src.common.constants import TypeMsg
from src.common.exceptions import DeliveryError
from src.common.logger import log_info, setup_logging
from src.config import settings
from src.core.tracking.hub import get_hub
from src.infra.database import close_db, get_db, init_db
from src.infra.event_bus import close_event_bus, get_event_bus, init_event_bus
from src.infra.redis_client import close_redis, get_redis, init_redis
from src.services.tracking_api.dependencies import reset_services
from src.services.tracking_api.routes import router as api_router
from src.services.tracking_api.schemas import ErrorResponse, HealthStatus
from src.services.tracking_api.ws import router as ws_router


SERVICE_NAME = "tracking_api"

_started_at = time.monotonic()


# === LIFESPAN ===

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл: PostgreSQL обязателен, Redis и RabbitMQ опциональны."""
    global _started_at
    setup_logging()
    _started_at = time.monotonic()

    await init_db()

    try:
        await init_redis()
    except (RedisError, OSError) as e:
        await log_info(f"Redis недоступен, кэш присутствия отключён: {e}", type_msg=TypeMsg.WARNING)

    try:
        await init_event_bus()
    except (AMQPError, ConnectionError, OSError) as e:
        await log_info(f"RabbitMQ недоступен, доменные события не публикуются: {e}", type_msg=TypeMsg.WARNING)

    await log_info(f"{SERVICE_NAME} запущен", type_msg=TypeMsg.INFO)

    yield

    reset_services()
    await close_event_bus()
    await close_redis()
    await close_db()
    await log_info(f"{SERVICE_NAME} остановлен", type_msg=TypeMsg.INFO)


# === APP ===

def create_app(use_lifespan: bool = True) -> FastAPI:
    """
    Собирает приложение.

    Args:
        use_lifespan: Подключаться к инфраструктуре при старте (False в тестах)
    """
    application = FastAPI(
        title="Delivery Partner Tracking API",
        description="Приём координат партнёров, статусы заказов и live-трекинг по WebSocket.",
        version=settings.system.VERSION,
        lifespan=lifespan if use_lifespan else None,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    application.include_router(api_router, prefix="/api/v1")
    application.include_router(ws_router)

    @application.exception_handler(DeliveryError)
    async def delivery_error_handler(request: Request, exc: DeliveryError) -> JSONResponse:
        if exc.http_status >= 500:
            await log_info(f"{request.method} {request.url.path}: {exc.message}", type_msg=TypeMsg.ERROR)
        body = ErrorResponse(error_code=exc.code.value, message=exc.message, details=exc.details)
        return JSONResponse(status_code=exc.http_status, content=body.model_dump(mode="json", exclude_none=True))

    @application.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        """Проверка здоровья сервиса и зависимостей."""
        dependencies = {
            "postgres": "healthy" if await get_db().health_check() else "unhealthy",
            "redis": "healthy" if await get_redis().health_check() else "unavailable",
            "rabbitmq": "healthy" if await get_event_bus().health_check() else "unavailable",
        }
        if dependencies["postgres"] != "healthy":
            status = "unhealthy"
        elif any(v != "healthy" for v in dependencies.values()):
            status = "degraded"
        else:
            status = "healthy"
        return HealthStatus(
            service=SERVICE_NAME,
            status=status,
            version=settings.system.VERSION,
            uptime_seconds=round(time.monotonic() - _started_at, 1),
            dependencies=dependencies,
        )

    @application.get("/stats", tags=["Stats"])
    async def get_stats() -> dict[str, Any]:
        """Статистика хаба и шины событий."""
        return {
            "hub": get_hub().get_stats(),
            "event_bus": get_event_bus().get_stats(),
        }

    return application


app = create_app()
