# src/services/earnings_api/routes/rides.py
"""
Маршруты истории поездок: список, детали, чек, статистика, частые маршруты.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from src.common.constants import UserRole
from src.core.ridehistory import RideHistoryService
from src.core.ridehistory.models import HistoryFilters
from src.services.earnings_api.auth import CallerIdentity, get_current_user
from src.services.earnings_api.dependencies import get_ride_history_service
from src.services.earnings_api.responses import ok

router = APIRouter(prefix="/rides", tags=["Ride history"])

Caller = Annotated[CallerIdentity, Depends(get_current_user)]
Service = Annotated[RideHistoryService, Depends(get_ride_history_service)]


@router.get("/history")
async def get_history(
    caller: Caller,
    service: Service,
    status: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    min_fare: Optional[Decimal] = None,
    max_fare: Optional[Decimal] = None,
    page: int = Query(1),
    page_size: int = Query(20),
) -> JSONResponse:
    """Водитель видит свои поездки как водитель, остальные как пассажир."""
    filters = HistoryFilters(
        status=status,
        from_date=from_date,
        to_date=to_date,
        min_fare=min_fare,
        max_fare=max_fare,
    )
    if caller.role == UserRole.DRIVER.value:
        history = await service.get_driver_history(caller.user_id, filters, page, page_size)
    else:
        history = await service.get_rider_history(caller.user_id, filters, page, page_size)
    return ok(history)


@router.get("/history/{ride_id}")
async def get_ride(ride_id: UUID, caller: Caller, service: Service) -> JSONResponse:
    return ok(await service.get_ride_details(ride_id, caller.user_id))


@router.get("/history/{ride_id}/receipt")
async def get_receipt(
    ride_id: UUID,
    caller: Caller,
    service: Service,
    tz: Optional[str] = None,
) -> JSONResponse:
    return ok(await service.get_receipt(ride_id, caller.user_id, tz))


@router.get("/stats")
async def get_stats(
    caller: Caller,
    service: Service,
    period: str = "all_time",
    tz: Optional[str] = None,
) -> JSONResponse:
    return ok(await service.get_rider_stats(caller.user_id, period, tz))


@router.get("/frequent-routes")
async def get_frequent_routes(caller: Caller, service: Service) -> JSONResponse:
    return ok(await service.get_frequent_routes(caller.user_id))
