# src/core/ridehistory/service.py
"""
Сервис истории поездок: списки, детали, чеки, статистика и частые маршруты.
Только чтение, событий не публикует.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Optional
from uuid import UUID

from src.common.constants import RideStatus
from src.common.errors import BadRequestError, ForbiddenError, NotFoundError
from src.common.money import ZERO, to_money
from src.common.references import generate_receipt_id
from src.core.periods import PeriodLabel, PeriodResolver
from src.core.ridehistory.models import (
    FareLineItem,
    FrequentRoutesResponse,
    HistoryFilters,
    Receipt,
    Ride,
    RideHistoryResponse,
    RideStats,
)
from src.core.ridehistory.repository import RideHistoryRepository
from src.infra.database import DatabaseManager
from src.shared.models.common import PaginationParams


def format_trip_date(moment: datetime) -> str:
    """'January 2, 2026' без ведущего нуля в дне."""
    return f"{moment:%B} {moment.day}, {moment.year}"


def format_trip_time(moment: datetime) -> str:
    """'3:04 PM' без ведущего нуля в часе."""
    hour = moment.hour % 12 or 12
    return f"{hour}:{moment:%M %p}"


def vehicle_info(ride: Ride) -> Optional[str]:
    if not ride.vehicle_make or not ride.vehicle_model:
        return None
    info = f"{ride.vehicle_make} {ride.vehicle_model}"
    if ride.vehicle_color:
        info = f"{ride.vehicle_color} {info}"
    return info


def fare_breakdown(ride: Ride) -> list[FareLineItem]:
    """Строки чека в фиксированном порядке, нулевые суммы пропускаются."""
    items: list[FareLineItem] = []

    if ride.base_fare > 0:
        items.append(FareLineItem(label="Base fare", amount=ride.base_fare, type="charge"))
    if ride.distance_fare > 0:
        items.append(FareLineItem(
            label=f"Distance ({ride.distance_km:.1f} km)",
            amount=ride.distance_fare,
            type="charge",
        ))
    if ride.time_fare > 0:
        items.append(FareLineItem(
            label=f"Time ({ride.duration_minutes} min)",
            amount=ride.time_fare,
            type="charge",
        ))
    if ride.surge_amount > 0:
        items.append(FareLineItem(
            label=f"Surge ({ride.surge_multiplier:.1f}x)",
            amount=ride.surge_amount,
            type="charge",
        ))
    if ride.wait_time_charge > 0:
        items.append(FareLineItem(label="Wait time", amount=ride.wait_time_charge, type="fee"))
    if ride.toll_fees > 0:
        items.append(FareLineItem(label="Tolls", amount=ride.toll_fees, type="fee"))
    if ride.discount_amount > 0:
        label = f"Promo ({ride.promo_code})" if ride.promo_code else "Discount"
        items.append(FareLineItem(label=label, amount=-ride.discount_amount, type="discount"))
    if ride.tip_amount > 0:
        items.append(FareLineItem(label="Tip", amount=ride.tip_amount, type="tip"))

    return items


class RideHistoryService:
    """Проекции истории поездок для пассажира и водителя."""

    def __init__(self, db: DatabaseManager, periods: Optional[PeriodResolver] = None) -> None:
        from src.config import settings

        self._repo = RideHistoryRepository(db)
        self._periods = periods or PeriodResolver(default_timezone=settings.domain.TIMEZONE)

        self.page_size = settings.rides.RIDES_PAGE_SIZE
        self.max_page_size = settings.rides.RIDES_MAX_PAGE_SIZE
        self.frequent_routes_limit = settings.rides.FREQUENT_ROUTES_LIMIT

    async def get_rider_history(
        self,
        rider_id: UUID,
        filters: Optional[HistoryFilters] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> RideHistoryResponse:
        pagination = PaginationParams.clamp(page, page_size, default=self.page_size, maximum=self.max_page_size)
        rides, total = await self._repo.list_for_rider(rider_id, filters, pagination.limit, pagination.offset)
        return RideHistoryResponse(rides=rides, total=total, page=pagination.page, page_size=pagination.page_size)

    async def get_driver_history(
        self,
        driver_id: UUID,
        filters: Optional[HistoryFilters] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> RideHistoryResponse:
        pagination = PaginationParams.clamp(page, page_size, default=self.page_size, maximum=self.max_page_size)
        rides, total = await self._repo.list_for_driver(driver_id, filters, pagination.limit, pagination.offset)
        return RideHistoryResponse(rides=rides, total=total, page=pagination.page, page_size=pagination.page_size)

    async def get_ride_details(self, ride_id: UUID, user_id: UUID) -> Ride:
        """
        Детали поездки для её участника.

        Raises:
            NotFoundError: поездки нет
            ForbiddenError: пользователь не пассажир и не водитель поездки
        """
        ride = await self._repo.get_by_id(ride_id)
        if ride is None:
            raise NotFoundError("ride")
        if not ride.involves(user_id):
            raise ForbiddenError("you don't have access to this ride")
        return ride

    async def get_receipt(self, ride_id: UUID, user_id: UUID, tz_name: Optional[str] = None) -> Receipt:
        """
        Чек завершённой поездки. Время поездки форматируется в зоне tz_name.

        Raises:
            BadRequestError: поездка не завершена
        """
        tz = self._periods.zone(tz_name)
        ride = await self.get_ride_details(ride_id, user_id)
        if ride.status != RideStatus.COMPLETED.value:
            raise BadRequestError("receipts are only available for completed rides")

        return self.build_receipt(ride, issued_at=self._periods.now(), tz=tz)

    @staticmethod
    def build_receipt(ride: Ride, issued_at: datetime, tz: tzinfo) -> Receipt:
        started = ride.requested_at.astimezone(tz)
        finished = ride.completed_at.astimezone(tz) if ride.completed_at else None

        return Receipt(
            receipt_id=generate_receipt_id(),
            ride_id=ride.id,
            issued_at=issued_at,
            pickup_address=ride.pickup_address,
            dropoff_address=ride.dropoff_address,
            distance_km=ride.distance_km,
            duration_minutes=ride.duration_minutes,
            trip_date=format_trip_date(started),
            trip_start_time=format_trip_time(started),
            trip_end_time=format_trip_time(finished) if finished else "",
            fare_breakdown=fare_breakdown(ride),
            subtotal=to_money(ride.base_fare + ride.distance_fare + ride.time_fare + ride.surge_amount),
            discounts=to_money(ride.discount_amount),
            fees=to_money(ride.toll_fees + ride.wait_time_charge),
            tip=to_money(ride.tip_amount or ZERO),
            total=to_money(ride.total_fare),
            currency=ride.currency,
            payment_method=ride.payment_method,
            driver_name=ride.driver_name,
            vehicle_info=vehicle_info(ride),
            license_plate=ride.license_plate,
        )

    async def get_rider_stats(
        self,
        rider_id: UUID,
        period: str = PeriodLabel.ALL_TIME.value,
        tz_name: Optional[str] = None,
    ) -> RideStats:
        time_range = self._periods.resolve(period, tz_name)
        stats = await self._repo.rider_stats(rider_id, time_range.start, time_range.end)
        stats.period = time_range.label
        return stats

    async def get_frequent_routes(self, rider_id: UUID) -> FrequentRoutesResponse:
        routes = await self._repo.frequent_routes(rider_id, limit=self.frequent_routes_limit)
        return FrequentRoutesResponse(routes=routes)
