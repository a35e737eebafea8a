# src/common/errors.py
"""
Единая таксономия ошибок приложения.

Сервисы поднимают подклассы AppError, HTTP-слой превращает их
в конверт {success: false, error: {code, error_code, message}}.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Базовая ошибка приложения с HTTP-статусом и машинным кодом."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Тело поля `error` в ответе."""
        body: dict[str, Any] = {
            "code": self.status_code,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class BadRequestError(AppError):
    """Нарушено правило валидации или бизнес-правило запроса."""
    status_code = 400
    error_code = "BAD_REQUEST"


class ValidationError(BadRequestError):
    """Тело/параметры запроса не прошли схему."""
    error_code = "VALIDATION_ERROR"


class UnauthorizedError(AppError):
    """Нет идентичности вызывающего."""
    status_code = 401
    error_code = "AUTH_UNAUTHORIZED"


class ForbiddenError(AppError):
    """Вызывающий не владеет ресурсом."""
    status_code = 403
    error_code = "AUTH_FORBIDDEN"


class NotFoundError(AppError):
    """Нет строки с таким идентификатором."""
    status_code = 404
    error_code = "RESOURCE_NOT_FOUND"

    def __init__(self, entity: str, message: str | None = None) -> None:
        super().__init__(message or f"{entity} not found", details={"entity": entity})
        self.entity = entity


class ConflictError(AppError):
    """Нарушена атомарность или уникальность при конкурентной записи."""
    status_code = 409
    error_code = "RESOURCE_CONFLICT"


class RequestTimeoutError(AppError):
    """Операция не уложилась в дедлайн запроса."""
    status_code = 504
    error_code = "TIMEOUT"


class InternalError(AppError):
    """Непредвиденная ошибка ввода-вывода. Детали хранилища наружу не отдаются."""
    status_code = 500
    error_code = "INTERNAL_ERROR"
