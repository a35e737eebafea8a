# src/core/ridehistory/repository.py
"""
Чтение таблицы rides для истории, чеков и статистики.
Пишет в rides сервис поездок, здесь только SELECT.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from asyncpg import Record

from src.common.logger import log_error
from src.common.money import to_money
from src.core.ridehistory.models import FrequentRoute, HistoryFilters, Ride, RideStats
from src.infra.database import DatabaseManager


RIDE_COLUMNS = """
    r.id, r.rider_id, r.driver_id, r.status,
    r.pickup_address, r.pickup_latitude, r.pickup_longitude,
    r.dropoff_address, r.dropoff_latitude, r.dropoff_longitude,
    r.distance AS distance_km, r.duration AS duration_minutes,
    r.base_fare, r.distance_fare, r.time_fare,
    r.surge_multiplier, r.surge_amount, r.toll_fees, r.wait_time_charge,
    r.tip_amount, r.discount_amount, r.promo_code, r.total_fare, r.currency,
    r.payment_method, r.payment_status,
    r.driver_name, r.vehicle_make, r.vehicle_model, r.vehicle_color, r.license_plate,
    r.rider_rating, r.driver_rating, r.cancellation_fee,
    r.requested_at, r.accepted_at, r.picked_up_at, r.completed_at, r.cancelled_at
"""


def _build_where(owner_column: str, owner_id: UUID, filters: Optional[HistoryFilters]) -> tuple[str, list[Any]]:
    """WHERE с позиционными параметрами $1..$n для фильтров истории."""
    where = [f"r.{owner_column} = $1"]
    args: list[Any] = [owner_id]

    if filters is not None:
        conditions = (
            ("r.status = ${}", filters.status),
            ("r.requested_at >= ${}", filters.from_date),
            ("r.requested_at < ${}", filters.to_date),
            ("r.total_fare >= ${}", filters.min_fare),
            ("r.total_fare <= ${}", filters.max_fare),
        )
        for template, value in conditions:
            if value is not None:
                args.append(value)
                where.append(template.format(len(args)))

    return " AND ".join(where), args


class RideHistoryRepository:
    """Проекции над rides."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_by_id(self, ride_id: UUID) -> Optional[Ride]:
        try:
            row = await self._db.fetchrow(
                f"SELECT {RIDE_COLUMNS} FROM rides r WHERE r.id = $1",
                ride_id,
            )
        except Exception as e:
            await log_error(f"Ошибка получения поездки {ride_id}: {e}")
            raise
        return self._row_to_ride(row) if row else None

    async def list_for_rider(
        self,
        rider_id: UUID,
        filters: Optional[HistoryFilters],
        limit: int,
        offset: int,
    ) -> tuple[list[Ride], int]:
        return await self._list("rider_id", rider_id, filters, limit, offset)

    async def list_for_driver(
        self,
        driver_id: UUID,
        filters: Optional[HistoryFilters],
        limit: int,
        offset: int,
    ) -> tuple[list[Ride], int]:
        return await self._list("driver_id", driver_id, filters, limit, offset)

    async def _list(
        self,
        owner_column: str,
        owner_id: UUID,
        filters: Optional[HistoryFilters],
        limit: int,
        offset: int,
    ) -> tuple[list[Ride], int]:
        where_clause, args = _build_where(owner_column, owner_id, filters)
        try:
            total = await self._db.fetchval(f"SELECT COUNT(*) FROM rides r WHERE {where_clause}", *args)
            rows = await self._db.fetch(
                f"""
                SELECT {RIDE_COLUMNS}
                FROM rides r
                WHERE {where_clause}
                ORDER BY r.requested_at DESC
                LIMIT ${len(args) + 1} OFFSET ${len(args) + 2}
                """,
                *args, limit, offset,
            )
        except Exception as e:
            await log_error(f"Ошибка получения истории поездок ({owner_column}={owner_id}): {e}")
            raise
        return [self._row_to_ride(row) for row in rows], int(total or 0)

    async def rider_stats(self, rider_id: UUID, start: datetime, end: datetime) -> RideStats:
        try:
            row = await self._db.fetchrow(
                """
                SELECT
                    COUNT(*) AS total_rides,
                    COUNT(CASE WHEN status = 'completed' THEN 1 END) AS completed_rides,
                    COUNT(CASE WHEN status = 'cancelled' THEN 1 END) AS cancelled_rides,
                    COALESCE(SUM(CASE WHEN status = 'completed' THEN total_fare ELSE 0 END), 0) AS total_spent,
                    COALESCE(SUM(CASE WHEN status = 'completed' THEN distance ELSE 0 END), 0) AS total_distance,
                    COALESCE(SUM(CASE WHEN status = 'completed' THEN duration ELSE 0 END), 0) AS total_duration,
                    COALESCE(AVG(CASE WHEN status = 'completed' THEN total_fare END), 0) AS average_fare,
                    COALESCE(AVG(CASE WHEN status = 'completed' THEN distance END), 0) AS average_distance,
                    COALESCE(AVG(rider_rating), 0) AS average_rating
                FROM rides
                WHERE rider_id = $1 AND requested_at >= $2 AND requested_at < $3
                """,
                rider_id, start, end,
            )
        except Exception as e:
            await log_error(f"Ошибка расчёта статистики поездок пассажира {rider_id}: {e}")
            raise

        if row is None:
            return RideStats()

        return RideStats(
            total_rides=int(row["total_rides"]),
            completed_rides=int(row["completed_rides"]),
            cancelled_rides=int(row["cancelled_rides"]),
            total_spent=to_money(row["total_spent"]),
            total_distance_km=Decimal(row["total_distance"]).quantize(Decimal("0.01")),
            total_duration_minutes=int(row["total_duration"]),
            average_fare=to_money(row["average_fare"]),
            average_distance_km=Decimal(row["average_distance"]).quantize(Decimal("0.01")),
            average_rating_given=round(float(row["average_rating"]), 2),
        )

    async def frequent_routes(self, rider_id: UUID, limit: int = 10) -> list[FrequentRoute]:
        """Пары (подача, высадка) минимум с двумя завершёнными поездками."""
        try:
            rows = await self._db.fetch(
                """
                SELECT pickup_address, dropoff_address,
                       COUNT(*) AS ride_count,
                       AVG(total_fare) AS average_fare,
                       MAX(requested_at) AS last_ride_at
                FROM rides
                WHERE rider_id = $1 AND status = 'completed'
                GROUP BY pickup_address, dropoff_address
                HAVING COUNT(*) >= 2
                ORDER BY ride_count DESC, last_ride_at DESC
                LIMIT $2
                """,
                rider_id, limit,
            )
        except Exception as e:
            await log_error(f"Ошибка получения частых маршрутов пассажира {rider_id}: {e}")
            raise

        return [
            FrequentRoute(
                pickup_address=row["pickup_address"],
                dropoff_address=row["dropoff_address"],
                ride_count=int(row["ride_count"]),
                average_fare=to_money(row["average_fare"]),
                last_ride_at=row["last_ride_at"],
            )
            for row in rows
        ]

    @staticmethod
    def _row_to_ride(row: Record | dict[str, Any]) -> Ride:
        return Ride(**dict(row))
