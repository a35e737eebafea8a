# src/shared/models/__init__.py
"""
Общие DTO и Pydantic-модели HTTP-слоя.
"""

from src.shared.models.common import (
    ApiResponse,
    ErrorBody,
    ErrorResponse,
    HealthStatus,
    MessageResponse,
    Money,
    PaginationParams,
)

__all__ = [
    "ApiResponse",
    "ErrorBody",
    "ErrorResponse",
    "HealthStatus",
    "MessageResponse",
    "Money",
    "PaginationParams",
]
