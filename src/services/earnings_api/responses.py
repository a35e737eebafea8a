# src/services/earnings_api/responses.py
"""
Конверт ответа {success, data} / {success, error}.
"""

from __future__ import annotations

from typing import Any

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.common.errors import AppError


def ok(data: Any, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    """Успешный ответ. Pydantic-модели сериализуются в JSON-режиме (деньги как числа)."""
    if isinstance(data, BaseModel):
        payload = data.model_dump(mode="json")
    elif isinstance(data, list):
        payload = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in data]
    else:
        payload = jsonable_encoder(data)
    return JSONResponse(status_code=status_code, content={"success": True, "data": payload})


def created(data: Any) -> JSONResponse:
    return ok(data, status_code=status.HTTP_201_CREATED)


def error_response(error: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "error": error.to_dict()},
    )
