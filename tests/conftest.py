# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, AsyncGenerator
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("RABBITMQ_PASSWORD", "guest")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret")
os.environ.setdefault("BANK_ACCOUNT_ENCRYPTION_KEY", "test_account_key")

from src.core.periods import PeriodResolver  # noqa: E402


# Среда, 2026-10-14 12:00 UTC
FIXED_NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "PROJECT_NAME": "ride_earnings_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "EARNINGS_API_PORT": 9092,
        "LOG_LEVEL": "DEBUG",
        "LOG_TO_FILE": False,
        "LOG_FORMAT": "json",
        "DEFAULT_CURRENCY": "EUR",
        "TIMEZONE": "Europe/Berlin",
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "ride_earnings_test",
        "DB_USER": "postgres",
        "DB_MAX_POOL_SIZE": 5,
        "DB_SERIALIZABLE_RETRIES": 2,
        "RABBITMQ_ENABLED": False,
        "RABBITMQ_EXCHANGE": "ride.test",
        "DEFAULT_COMMISSION_RATE": "0.15",
        "MIN_PAYOUT_AMOUNT": "10.00",
        "MIN_PURCHASE_AMOUNT": "5.00",
        "MAX_PURCHASE_AMOUNT": "500.00",
        "SIGNUP_BONUS_POINTS": 50,
        "RIDES_MAX_PAGE_SIZE": 25,
        "JWT_ALGORITHM": "HS256",
        "REQUEST_TIMEOUT_SECONDS": 5.0,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_conn() -> AsyncMock:
    """Мок соединения внутри транзакции."""
    conn = AsyncMock()
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetch = AsyncMock(return_value=[])
    conn.execute = AsyncMock(return_value="INSERT 0 1")
    conn.fetchval = AsyncMock(return_value=None)
    return conn


@pytest.fixture
def mock_db(mock_conn: AsyncMock) -> AsyncMock:
    """
    Мок менеджера базы данных.
    transaction() отдаёт mock_conn, run_in_transaction вызывает функцию с ним.
    """
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)

    @asynccontextmanager
    async def transaction(isolation: str | None = None) -> AsyncGenerator[AsyncMock, None]:
        yield mock_conn

    async def run_in_transaction(func, *, isolation: str = "serializable", attempts: int | None = None):
        return await func(mock_conn)

    db.transaction = transaction
    db.run_in_transaction = AsyncMock(side_effect=run_in_transaction)
    return db


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=True)
    event_bus.is_connected = True
    return event_bus


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def periods() -> PeriodResolver:
    """Резолвер периодов с остановленными часами."""
    return PeriodResolver(clock=lambda: FIXED_NOW, default_timezone="UTC")


# =============================================================================
# ФИКСТУРЫ МОДЕЛЕЙ
# =============================================================================

@pytest.fixture
def driver_id() -> UUID:
    return uuid4()


@pytest.fixture
def rider_id() -> UUID:
    return uuid4()


@pytest.fixture
def sample_ride_row(rider_id: UUID, driver_id: UUID) -> dict[str, Any]:
    """Строка завершённой поездки из rides."""
    return {
        "id": uuid4(),
        "rider_id": rider_id,
        "driver_id": driver_id,
        "status": "completed",
        "pickup_address": "Hauptbahnhof",
        "pickup_latitude": 53.5528,
        "pickup_longitude": 10.0067,
        "dropoff_address": "Flughafen",
        "dropoff_latitude": 53.6304,
        "dropoff_longitude": 9.9882,
        "distance_km": Decimal("12.46"),
        "duration_minutes": 24,
        "base_fare": Decimal("3.50"),
        "distance_fare": Decimal("12.00"),
        "time_fare": Decimal("4.80"),
        "surge_multiplier": Decimal("1.50"),
        "surge_amount": Decimal("2.40"),
        "toll_fees": Decimal("1.00"),
        "wait_time_charge": Decimal("0.75"),
        "tip_amount": Decimal("3.00"),
        "discount_amount": Decimal("2.00"),
        "promo_code": "WELCOME10",
        "total_fare": Decimal("25.45"),
        "currency": "USD",
        "payment_method": "card",
        "payment_status": "completed",
        "driver_name": "Jonas",
        "vehicle_make": "Toyota",
        "vehicle_model": "Prius",
        "vehicle_color": "Silver",
        "license_plate": "HH-RK 204",
        "rider_rating": 5,
        "driver_rating": 5,
        "cancellation_fee": Decimal("0.00"),
        "requested_at": datetime(2026, 10, 12, 15, 4, tzinfo=timezone.utc),
        "accepted_at": datetime(2026, 10, 12, 15, 6, tzinfo=timezone.utc),
        "picked_up_at": datetime(2026, 10, 12, 15, 10, tzinfo=timezone.utc),
        "completed_at": datetime(2026, 10, 12, 15, 34, tzinfo=timezone.utc),
        "cancelled_at": None,
    }
