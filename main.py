#!/usr/bin/env python3
# main.py
"""
Главная точка входа: поднимает HTTP API начислений и выплат.
"""

from __future__ import annotations

import uvicorn

from src.common.logger import get_logger, setup_logging
from src.config import settings


def main() -> None:
    setup_logging()
    get_logger().info(
        f"{settings.system.PROJECT_NAME} v{settings.system.VERSION}: "
        f"API на {settings.deployment.EARNINGS_API_HOST}:{settings.deployment.EARNINGS_API_PORT}"
    )

    uvicorn.run(
        "src.services.earnings_api.app:app",
        host=settings.deployment.EARNINGS_API_HOST,
        port=settings.deployment.EARNINGS_API_PORT,
        workers=settings.deployment.EARNINGS_API_WORKERS,
        log_level="debug" if settings.system.DEBUG else "info",
    )


if __name__ == "__main__":
    main()
