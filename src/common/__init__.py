# src/common/__init__.py
"""
Общие утилиты: константы, логгер, ошибки, деньги, идентификаторы.
"""

from src.common.constants import TypeMsg
from src.common.errors import (
    AppError,
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    RequestTimeoutError,
    UnauthorizedError,
)
from src.common.logger import get_logger, log_debug, log_error, log_info, log_warning

__all__ = [
    "TypeMsg",
    "AppError",
    "BadRequestError",
    "ConflictError",
    "ForbiddenError",
    "InternalError",
    "NotFoundError",
    "RequestTimeoutError",
    "UnauthorizedError",
    "get_logger",
    "log_debug",
    "log_error",
    "log_info",
    "log_warning",
]
