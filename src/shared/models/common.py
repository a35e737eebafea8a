# src/shared/models/common.py
"""
Общие модели для всех роутеров API.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any, Generic, TypeVar

from pydantic import BaseModel, Field, PlainSerializer


T = TypeVar("T")

# Деньги внутри Decimal, в JSON число с двумя знаками
Money = Annotated[
    Decimal,
    PlainSerializer(lambda value: float(value), return_type=float, when_used="json"),
]


class PaginationParams(BaseModel):
    """Параметры пагинации."""

    page: int = Field(default=1, ge=1, description="Номер страницы")
    page_size: int = Field(default=20, ge=1, le=100, description="Размер страницы")

    @classmethod
    def clamp(cls, page: int | None, page_size: int | None, *, default: int = 20, maximum: int = 100) -> PaginationParams:
        """
        Нормализует параметры из query: page < 1 -> 1,
        page_size вне [1, maximum] -> default.
        """
        page = page if page and page >= 1 else 1
        if not page_size or page_size < 1 or page_size > maximum:
            page_size = default
        return cls.model_construct(page=page, page_size=page_size)

    @property
    def offset(self) -> int:
        """Смещение для SQL-запроса."""
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        """Лимит для SQL-запроса."""
        return self.page_size


class ApiResponse(BaseModel, Generic[T]):
    """Конверт успешного ответа."""

    success: bool = True
    data: T | None = None


class ErrorBody(BaseModel):
    """Поле error в конверте ошибки."""

    code: int
    error_code: str
    message: str
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Конверт ответа с ошибкой."""

    success: bool = False
    error: ErrorBody


class MessageResponse(BaseModel):
    message: str


class HealthStatus(BaseModel):
    """Статус здоровья сервиса."""

    service: str
    status: str = "healthy"  # healthy, degraded
    version: str | None = None
    uptime_seconds: float | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
    # dependencies: {"postgres": "healthy", "rabbitmq": "disabled"}
