# tests/config/test_loader.py
"""
Тесты для модуля загрузки конфигурации.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from src.config.loader import (
    AuthSettings,
    DatabaseSettings,
    EarningsSettings,
    RabbitMQSettings,
    Settings,
    get_config_path,
    get_project_root,
    load_config_json,
)


class TestGetProjectRoot:
    """Тесты для функции get_project_root."""

    def test_returns_path_object(self) -> None:
        """Проверяет, что возвращается объект Path."""
        assert isinstance(get_project_root(), Path)

    def test_root_contains_src_and_config(self) -> None:
        """Проверяет наличие директорий src и config в корне."""
        root = get_project_root()
        assert (root / "src").exists()
        assert (root / "config").exists()


class TestGetConfigPath:
    """Тесты для функции get_config_path."""

    def test_default_path(self) -> None:
        """По умолчанию config/config.json."""
        with patch.dict("os.environ", {}, clear=False) as env:
            env.pop("CONFIG_PATH", None)
            path = get_config_path()

        assert path.name == "config.json"
        assert path.parent.name == "config"

    def test_override_from_env(self, tmp_path: Path) -> None:
        """CONFIG_PATH переопределяет путь."""
        override = tmp_path / "other.json"
        with patch.dict("os.environ", {"CONFIG_PATH": str(override)}):
            assert get_config_path() == override


class TestLoadConfigJson:
    """Тесты для функции load_config_json."""

    def test_contains_required_keys(self) -> None:
        """Проверяет наличие обязательных ключей."""
        config = load_config_json()

        for key in ("PROJECT_NAME", "VERSION", "DB_HOST", "DEFAULT_COMMISSION_RATE", "MIN_PAYOUT_AMOUNT"):
            assert key in config, f"Отсутствует ключ: {key}"

    def test_comment_keys_stripped(self) -> None:
        """Ключи-комментарии не попадают в словарь."""
        config = load_config_json()
        assert not any(key.startswith("_comment_") for key in config)

    def test_raises_file_not_found(self, tmp_path: Path) -> None:
        """Проверяет исключение при отсутствии файла."""
        with patch("src.config.loader.get_config_path", return_value=tmp_path / "nonexistent.json"):
            with pytest.raises(FileNotFoundError):
                load_config_json()


class TestSectionModels:
    """Тесты секций настроек."""

    def test_database_dsn(self) -> None:
        """DSN собирается из полей."""
        db = DatabaseSettings(DB_USER="u", DB_PASSWORD="p", DB_HOST="h", DB_PORT=5433, DB_NAME="n")
        assert db.dsn == "postgresql://u:p@h:5433/n"

    def test_database_pool_default(self) -> None:
        """Размер пула по умолчанию 25."""
        assert DatabaseSettings(DB_PASSWORD="x").DB_MAX_POOL_SIZE == 25

    def test_rabbitmq_url(self) -> None:
        """URL RabbitMQ с vhost."""
        with patch.dict("os.environ", {"RABBITMQ_PASSWORD": ""}):
            rabbit = RabbitMQSettings(RABBITMQ_USER="a", RABBITMQ_PASSWORD="b", RABBITMQ_HOST="mq")
        assert rabbit.url == "amqp://a:b@mq:5672/"

    def test_earnings_defaults(self) -> None:
        """Правила начислений по умолчанию."""
        earnings = EarningsSettings()
        assert earnings.DEFAULT_COMMISSION_RATE == Decimal("0.20")
        assert earnings.MIN_PAYOUT_AMOUNT == Decimal("5.00")

    def test_jwt_keys_from_env_json(self) -> None:
        """JWT_KEYS из окружения: JSON-словарь kid -> секрет."""
        with patch.dict("os.environ", {"JWT_KEYS": '{"k1": "s1", "k2": "s2"}'}):
            auth = AuthSettings()
        assert auth.JWT_KEYS == {"k1": "s1", "k2": "s2"}

    def test_jwt_secret_from_env(self) -> None:
        """JWT_SECRET из окружения имеет приоритет."""
        with patch.dict("os.environ", {"JWT_SECRET": "from-env"}):
            auth = AuthSettings(JWT_SECRET="from-json")
        assert auth.JWT_SECRET == "from-env"


class TestSettingsFromConfigJson:
    """Тесты сборки Settings из плоского config.json."""

    def test_sections_filled(self, mock_config: dict[str, Any]) -> None:
        """Значения раскладываются по секциям."""
        with patch.dict("os.environ", {}, clear=False) as env:
            for key in ("TIMEZONE", "EARNINGS_API_PORT", "ENVIRONMENT", "DB_HOST", "LOG_LEVEL", "LOG_FORMAT"):
                env.pop(key, None)
            settings = Settings.from_config_json(mock_config)

        assert settings.system.PROJECT_NAME == "ride_earnings_test"
        assert settings.deployment.EARNINGS_API_PORT == 9092
        assert settings.domain.DEFAULT_CURRENCY == "EUR"
        assert settings.domain.TIMEZONE == "Europe/Berlin"
        assert settings.database.DB_MAX_POOL_SIZE == 5
        assert settings.rabbitmq.RABBITMQ_ENABLED is False
        assert settings.earnings.DEFAULT_COMMISSION_RATE == Decimal("0.15")
        assert settings.loyalty.SIGNUP_BONUS_POINTS == 50
        assert settings.rides.RIDES_MAX_PAGE_SIZE == 25
        assert settings.timeouts.REQUEST_TIMEOUT_SECONDS == 5.0

    def test_env_overrides_json(self, mock_config: dict[str, Any]) -> None:
        """Переменные окружения перекрывают config.json."""
        with patch.dict("os.environ", {"DB_HOST": "db.internal", "TIMEZONE": "Asia/Tokyo"}):
            settings = Settings.from_config_json(mock_config)

        assert settings.database.DB_HOST == "db.internal"
        assert settings.domain.TIMEZONE == "Asia/Tokyo"

    def test_unknown_keys_ignored(self) -> None:
        """Неизвестные ключи не ломают загрузку."""
        settings = Settings.from_config_json({"SOMETHING_ELSE": 1})
        assert settings.system.PROJECT_NAME == "ride_earnings"
