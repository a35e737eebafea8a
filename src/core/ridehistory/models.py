# src/core/ridehistory/models.py
"""
Модели проекций истории поездок: поездка, чек, статистика.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.shared.models.common import Money


class Ride(BaseModel):
    """Поездка из истории (только чтение)."""

    id: UUID
    rider_id: UUID
    driver_id: Optional[UUID] = None
    status: str

    # Маршрут
    pickup_address: str = ""
    pickup_latitude: float = 0.0
    pickup_longitude: float = 0.0
    dropoff_address: str = ""
    dropoff_latitude: float = 0.0
    dropoff_longitude: float = 0.0
    distance_km: Decimal = Decimal("0")
    duration_minutes: int = 0

    # Стоимость
    base_fare: Money = Decimal("0.00")
    distance_fare: Money = Decimal("0.00")
    time_fare: Money = Decimal("0.00")
    surge_multiplier: Money = Decimal("1.00")
    surge_amount: Money = Decimal("0.00")
    toll_fees: Money = Decimal("0.00")
    wait_time_charge: Money = Decimal("0.00")
    tip_amount: Money = Decimal("0.00")
    discount_amount: Money = Decimal("0.00")
    promo_code: Optional[str] = None
    total_fare: Money = Decimal("0.00")
    currency: str = "USD"

    # Оплата
    payment_method: str = "card"
    payment_status: str = "pending"

    # Водитель и автомобиль
    driver_name: Optional[str] = None
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    vehicle_color: Optional[str] = None
    license_plate: Optional[str] = None

    rider_rating: Optional[int] = None
    driver_rating: Optional[int] = None
    cancellation_fee: Money = Decimal("0.00")

    requested_at: datetime
    accepted_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    def involves(self, user_id: UUID) -> bool:
        """Пользователь является пассажиром или назначенным водителем."""
        return self.rider_id == user_id or (self.driver_id is not None and self.driver_id == user_id)


class FareLineItem(BaseModel):
    """Строка разбивки стоимости в чеке."""

    label: str
    amount: Money
    type: str  # charge, fee, discount, tip


class Receipt(BaseModel):
    """Чек завершённой поездки."""

    receipt_id: str
    ride_id: UUID
    issued_at: datetime

    pickup_address: str
    dropoff_address: str
    distance_km: Decimal
    duration_minutes: int
    trip_date: str
    trip_start_time: str
    trip_end_time: str = ""

    fare_breakdown: list[FareLineItem] = Field(default_factory=list)
    subtotal: Money
    discounts: Money
    fees: Money
    tip: Money
    total: Money
    currency: str

    payment_method: str
    driver_name: Optional[str] = None
    vehicle_info: Optional[str] = None
    license_plate: Optional[str] = None


class HistoryFilters(BaseModel):
    """Фильтры истории поездок."""

    status: Optional[str] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    min_fare: Optional[Decimal] = None
    max_fare: Optional[Decimal] = None


class RideHistoryResponse(BaseModel):
    rides: list[Ride] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20


class RideStats(BaseModel):
    """Сводка поездок пассажира за период."""

    total_rides: int = 0
    completed_rides: int = 0
    cancelled_rides: int = 0
    total_spent: Money = Decimal("0.00")
    total_distance_km: Decimal = Decimal("0")
    total_duration_minutes: int = 0
    average_fare: Money = Decimal("0.00")
    average_distance_km: Decimal = Decimal("0")
    average_rating_given: float = 0.0
    currency: str = "USD"
    period: str = "all_time"


class FrequentRoute(BaseModel):
    pickup_address: str
    dropoff_address: str
    ride_count: int
    average_fare: Money
    last_ride_at: datetime


class FrequentRoutesResponse(BaseModel):
    routes: list[FrequentRoute] = Field(default_factory=list)
