#!/usr/bin/env python3
# entrypoint_earnings_api.py
"""
Точка входа для Earnings API в контейнере.
Порт: 8092
"""

import asyncio
import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

import uvicorn

from src.config import settings
from src.common.logger import log_info, setup_logging
from src.common.constants import TypeMsg


async def main() -> None:
    """Запуск Earnings API."""
    setup_logging()
    await log_info(
        f"Запуск Earnings API на порту {settings.deployment.EARNINGS_API_PORT}",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.services.earnings_api.app:app",
        host=settings.deployment.EARNINGS_API_HOST,
        port=settings.deployment.EARNINGS_API_PORT,
        reload=settings.system.DEBUG,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
