# src/services/earnings_api/errors.py
"""
Обработчики исключений FastAPI: любая ошибка превращается в конверт
{success: false, error: {code, error_code, message}}.
"""

from __future__ import annotations

import asyncio

from asyncpg.exceptions import UniqueViolationError
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.common.errors import (
    AppError,
    ConflictError,
    InternalError,
    RequestTimeoutError,
    ValidationError,
)
from src.common.logger import log_error, log_warning
from src.services.earnings_api.responses import error_response


# Ответы роутинга Starlette (нет маршрута, не тот метод)
_HTTP_ERROR_CODES = {
    404: "RESOURCE_NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def _describe_validation(exc: RequestValidationError) -> str:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(problems) or "invalid request"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        await log_error(f"{request.method} {request.url.path}: {exc.message}")
    return error_response(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(ValidationError(_describe_validation(exc)))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error = AppError(str(exc.detail))
    error.status_code = exc.status_code
    error.error_code = _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    response = error_response(error)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def timeout_error_handler(request: Request, exc: asyncio.TimeoutError) -> JSONResponse:
    await log_warning(f"{request.method} {request.url.path}: превышен таймаут запроса")
    return error_response(RequestTimeoutError("request timed out"))


async def unique_violation_handler(request: Request, exc: UniqueViolationError) -> JSONResponse:
    await log_warning(f"{request.method} {request.url.path}: нарушение уникальности ({getattr(exc, 'constraint_name', None)})")
    return error_response(ConflictError("resource already exists"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Детали только в лог, наружу общее сообщение
    await log_error(f"{request.method} {request.url.path}: {exc!r}", exc_info=True)
    return error_response(InternalError("internal server error"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(asyncio.TimeoutError, timeout_error_handler)
    app.add_exception_handler(UniqueViolationError, unique_violation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
