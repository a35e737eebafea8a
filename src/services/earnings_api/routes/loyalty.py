# src/services/earnings_api/routes/loyalty.py
"""
Маршруты баллов лояльности пассажира.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from src.core.loyalty import LoyaltyService
from src.core.loyalty.models import UsePointsRequest
from src.services.earnings_api.auth import CallerIdentity, get_current_user
from src.services.earnings_api.dependencies import get_loyalty_service
from src.services.earnings_api.responses import ok

router = APIRouter(prefix="/loyalty", tags=["Loyalty"])

Caller = Annotated[CallerIdentity, Depends(get_current_user)]
Service = Annotated[LoyaltyService, Depends(get_loyalty_service)]


@router.get("/status")
async def get_status(caller: Caller, service: Service) -> JSONResponse:
    return ok(await service.get_status(caller.user_id))


@router.get("/points/history")
async def get_points_history(
    caller: Caller,
    service: Service,
    page: int = Query(1),
    page_size: int = Query(20),
) -> JSONResponse:
    return ok(await service.get_history(caller.user_id, page, page_size))


@router.post("/points/use")
async def use_points(request: UsePointsRequest, caller: Caller, service: Service) -> JSONResponse:
    return ok(await service.use_points(caller.user_id, request.ride_id, request.points))
