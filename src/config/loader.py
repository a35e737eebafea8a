# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json.
Секретные данные переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации (можно переопределить через CONFIG_PATH)."""
    override = os.getenv("CONFIG_PATH")
    if override:
        return Path(override)
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь без ключей-комментариев."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return {k: v for k, v in data.items() if not k.startswith("_comment_")}


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "ride_earnings"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"


class DeploymentSettings(BaseModel):
    """Где слушает HTTP API."""
    EARNINGS_API_HOST: str = "0.0.0.0"
    EARNINGS_API_PORT: int = 8092
    EARNINGS_API_WORKERS: int = 1


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760


class DomainSettings(BaseModel):
    """Настройки домена: валюта и часовой пояс по умолчанию."""
    DEFAULT_CURRENCY: str = "USD"
    TIMEZONE: str = "UTC"


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "ride_earnings"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 25
    DB_COMMAND_TIMEOUT: int = 30
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0
    DB_SERIALIZABLE_RETRIES: int = 3

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ (уведомления)."""
    RABBITMQ_ENABLED: bool = True
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "ride.events"
    RABBITMQ_PREFETCH_COUNT: int = 10

    @field_validator("RABBITMQ_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Пароль из окружения имеет приоритет."""
        return os.getenv("RABBITMQ_PASSWORD", "") or v

    @property
    def url(self) -> str:
        """URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class EarningsSettings(BaseModel):
    """Правила начислений и выплат."""
    DEFAULT_COMMISSION_RATE: Decimal = Decimal("0.20")
    MIN_PAYOUT_AMOUNT: Decimal = Decimal("5.00")
    PAYOUT_PERIOD_DAYS: int = 30
    HISTORY_PAGE_SIZE: int = 20
    HISTORY_MAX_PAGE_SIZE: int = 100
    PAYOUTS_MAX_PAGE_SIZE: int = 50
    BANK_ACCOUNT_ENCRYPTION_KEY: str = ""

    @field_validator("BANK_ACCOUNT_ENCRYPTION_KEY", mode="before")
    @classmethod
    def encryption_key_from_env(cls, v: str) -> str:
        """Ключ шифрования номеров счетов берётся из окружения."""
        return os.getenv("BANK_ACCOUNT_ENCRYPTION_KEY", "") or v or ""


class GiftCardSettings(BaseModel):
    """Ограничения подарочных карт."""
    MIN_PURCHASE_AMOUNT: Decimal = Decimal("5.00")
    MAX_PURCHASE_AMOUNT: Decimal = Decimal("500.00")
    VALIDITY_DAYS: int = 365
    BULK_MAX_COUNT: int = 1000
    RECENT_TRANSACTIONS_LIMIT: int = 20
    DEDUCT_RETRY_ATTEMPTS: int = 3


class LoyaltySettings(BaseModel):
    """Настройки программы лояльности."""
    SIGNUP_BONUS_POINTS: int = 100
    POINTS_VALIDITY_DAYS: int = 365


class RideHistorySettings(BaseModel):
    """Пагинация истории поездок и частые маршруты."""
    RIDES_PAGE_SIZE: int = 20
    RIDES_MAX_PAGE_SIZE: int = 50
    FREQUENT_ROUTES_LIMIT: int = 10


class AuthSettings(BaseModel):
    """
    Ключи проверки JWT.

    JWT_KEYS: словарь kid -> секрет (ротация ключей),
    JWT_SECRET: legacy-ключ для токенов без kid.
    """
    JWT_ALGORITHM: str = "HS256"
    JWT_SECRET: str = ""
    JWT_KEYS: dict[str, str] = Field(default_factory=dict)

    @field_validator("JWT_SECRET", mode="before")
    @classmethod
    def secret_from_env(cls, v: str) -> str:
        """Секрет из окружения имеет приоритет."""
        return os.getenv("JWT_SECRET", "") or v or ""

    @field_validator("JWT_KEYS", mode="before")
    @classmethod
    def keys_from_env(cls, v: Any) -> Any:
        """JWT_KEYS можно передать JSON-строкой через окружение."""
        env_keys = os.getenv("JWT_KEYS")
        if env_keys:
            return json.loads(env_keys)
        if isinstance(v, str):
            return json.loads(v) if v else {}
        return v or {}


class TimeoutSettings(BaseModel):
    """Таймауты."""
    REQUEST_TIMEOUT_SECONDS: float = 15.0


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    domain: DomainSettings = Field(default_factory=DomainSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    earnings: EarningsSettings = Field(default_factory=EarningsSettings)
    gift_cards: GiftCardSettings = Field(default_factory=GiftCardSettings)
    loyalty: LoyaltySettings = Field(default_factory=LoyaltySettings)
    rides: RideHistorySettings = Field(default_factory=RideHistorySettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_config_json(cls, data: dict[str, Any] | None = None) -> "Settings":
        """
        Создаёт Settings из плоского config.json.
        Хосты и секреты переопределяются из переменных окружения.
        """
        cfg = load_config_json() if data is None else data

        def pick(model: type[BaseModel], env_keys: tuple[str, ...] = ()) -> dict[str, Any]:
            # Берём из json только известные модели поля, env перекрывает json
            values = {name: cfg[name] for name in model.model_fields if name in cfg}
            for key in env_keys:
                env_value = os.getenv(key)
                if env_value is not None:
                    values[key] = env_value
            return values

        return cls(
            system=SystemSettings(**pick(SystemSettings, ("ENVIRONMENT",))),
            deployment=DeploymentSettings(**pick(DeploymentSettings, ("EARNINGS_API_PORT",))),
            logging=LoggingSettings(**pick(LoggingSettings, ("LOG_LEVEL", "LOG_FORMAT"))),
            domain=DomainSettings(**pick(DomainSettings, ("TIMEZONE",))),
            database=DatabaseSettings(
                **pick(DatabaseSettings, ("DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD"))
            ),
            rabbitmq=RabbitMQSettings(
                **pick(RabbitMQSettings, ("RABBITMQ_HOST", "RABBITMQ_PORT", "RABBITMQ_USER", "RABBITMQ_PASSWORD"))
            ),
            earnings=EarningsSettings(**pick(EarningsSettings, ("BANK_ACCOUNT_ENCRYPTION_KEY",))),
            gift_cards=GiftCardSettings(**pick(GiftCardSettings)),
            loyalty=LoyaltySettings(**pick(LoyaltySettings)),
            rides=RideHistorySettings(**pick(RideHistorySettings)),
            auth=AuthSettings(**pick(AuthSettings)),
            timeouts=TimeoutSettings(**pick(TimeoutSettings, ("REQUEST_TIMEOUT_SECONDS",))),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Перед чтением config.json подгружает .env из корня проекта.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
