# src/services/earnings_api/app.py
"""
FastAPI приложение начислений и выплат.

Все маршруты под /api/v1, Bearer JWT обязателен везде,
кроме /health и публичной проверки баланса подарочной карты.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.common.constants import TypeMsg
from src.common.errors import RequestTimeoutError
from src.common.logger import log_info, log_warning, setup_logging
from src.config import settings
from src.infra.database import close_db, get_db, init_db
from src.infra.event_bus import close_event_bus, get_event_bus, init_event_bus
from src.services.earnings_api.dependencies import cleanup_dependencies, init_dependencies
from src.services.earnings_api.errors import register_exception_handlers
from src.services.earnings_api.responses import error_response
from src.services.earnings_api.routes import ROUTERS
from src.shared.models.common import HealthStatus

SERVICE_NAME = "earnings_api"
_started_at = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    setup_logging()
    await log_info(f"Запуск {SERVICE_NAME} v{settings.system.VERSION}...", type_msg=TypeMsg.INFO)

    await init_db()
    await init_event_bus()
    await init_dependencies(get_db(), get_event_bus())

    yield

    await log_info(f"Остановка {SERVICE_NAME}...", type_msg=TypeMsg.INFO)
    await cleanup_dependencies()
    await close_event_bus()
    await close_db()


def create_app(use_lifespan: bool = True) -> FastAPI:
    application = FastAPI(
        title="Earnings API",
        description="Заработок и выплаты водителей, подарочные карты, баллы лояльности, история поездок.",
        version=settings.system.VERSION,
        lifespan=lifespan if use_lifespan else None,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.middleware("http")
    async def request_timeout(request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), timeout=settings.timeouts.REQUEST_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            await log_warning(f"{request.method} {request.url.path}: превышен таймаут запроса")
            return error_response(RequestTimeoutError("request timed out"))

    register_exception_handlers(application)

    for router in ROUTERS:
        application.include_router(router, prefix="/api/v1")

    @application.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        """Проверка здоровья сервиса и его зависимостей."""
        postgres_ok = await get_db().health_check()
        if settings.rabbitmq.RABBITMQ_ENABLED:
            rabbitmq = "healthy" if await get_event_bus().health_check() else "unhealthy"
        else:
            rabbitmq = "disabled"

        return HealthStatus(
            service=SERVICE_NAME,
            status="healthy" if postgres_ok else "degraded",
            version=settings.system.VERSION,
            uptime_seconds=round(time.monotonic() - _started_at, 1),
            dependencies={
                "postgres": "healthy" if postgres_ok else "unhealthy",
                "rabbitmq": rabbitmq,
            },
        )

    return application


app = create_app()
