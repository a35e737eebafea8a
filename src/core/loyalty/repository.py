# src/core/loyalty/repository.py
"""
Репозиторий счетов и журнала баллов лояльности.

Баланс и запись журнала всегда меняются в одной транзакции,
поэтому Σ points по журналу равна available_points.
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from asyncpg import Connection, Record

from src.common.logger import log_error
from src.core.loyalty.models import PointsTransaction, RiderLoyalty
from src.infra.database import DatabaseManager


ACCOUNT_COLUMNS = """
    rider_id, tier, total_points, available_points,
    lifetime_points, tier_points, joined_at, updated_at
"""

TRANSACTION_COLUMNS = """
    id, rider_id, transaction_type, points, balance_after,
    source, source_id, description, expires_at, created_at
"""


class LoyaltyRepository:
    """Счета баллов и журнал операций."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_account(self, rider_id: UUID, conn: Optional[Connection] = None) -> Optional[RiderLoyalty]:
        executor = conn or self._db
        try:
            row = await executor.fetchrow(
                f"SELECT {ACCOUNT_COLUMNS} FROM rider_loyalty WHERE rider_id = $1",
                rider_id,
            )
        except Exception as e:
            await log_error(f"Ошибка получения счёта лояльности {rider_id}: {e}")
            raise
        return self._row_to_account(row) if row else None

    async def create_account(self, account: RiderLoyalty, conn: Optional[Connection] = None) -> bool:
        """
        Создаёт счёт, если его ещё нет.

        Returns:
            True, если счёт создан этим вызовом
        """
        executor = conn or self._db
        try:
            created = await executor.fetchval(
                f"""
                INSERT INTO rider_loyalty ({ACCOUNT_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                ON CONFLICT (rider_id) DO NOTHING
                RETURNING rider_id
                """,
                account.rider_id,
                account.tier.value,
                account.total_points,
                account.available_points,
                account.lifetime_points,
                account.tier_points,
                account.joined_at,
                account.updated_at,
            )
        except Exception as e:
            await log_error(f"Ошибка создания счёта лояльности {account.rider_id}: {e}")
            raise
        return created is not None

    async def credit(self, rider_id: UUID, points: int, conn: Optional[Connection] = None) -> int:
        """Зачисляет баллы. Возвращает новый доступный баланс."""
        executor = conn or self._db
        try:
            balance = await executor.fetchval(
                """
                UPDATE rider_loyalty
                SET available_points = available_points + $2,
                    total_points = total_points + $2,
                    lifetime_points = lifetime_points + $2,
                    tier_points = tier_points + $2,
                    updated_at = NOW()
                WHERE rider_id = $1
                RETURNING available_points
                """,
                rider_id, points,
            )
        except Exception as e:
            await log_error(f"Ошибка зачисления {points} баллов пассажиру {rider_id}: {e}")
            raise
        return int(balance)

    async def debit(self, rider_id: UUID, points: int, conn: Optional[Connection] = None) -> Optional[int]:
        """
        Списание как compare-and-swap по available_points >= points.

        Returns:
            Новый баланс или None, если баллов не хватает
        """
        executor = conn or self._db
        try:
            balance = await executor.fetchval(
                """
                UPDATE rider_loyalty
                SET available_points = available_points - $2,
                    total_points = total_points - $2,
                    updated_at = NOW()
                WHERE rider_id = $1 AND available_points >= $2
                RETURNING available_points
                """,
                rider_id, points,
            )
        except Exception as e:
            await log_error(f"Ошибка списания {points} баллов у пассажира {rider_id}: {e}")
            raise
        return int(balance) if balance is not None else None

    async def insert_transaction(self, txn: PointsTransaction, conn: Optional[Connection] = None) -> PointsTransaction:
        executor = conn or self._db
        try:
            await executor.execute(
                f"""
                INSERT INTO loyalty_points_transactions ({TRANSACTION_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                """,
                txn.id,
                txn.rider_id,
                txn.transaction_type.value,
                txn.points,
                txn.balance_after,
                txn.source,
                txn.source_id,
                txn.description,
                txn.expires_at,
                txn.created_at,
            )
        except Exception as e:
            await log_error(f"Ошибка записи операции с баллами пассажира {txn.rider_id}: {e}")
            raise
        return txn

    async def list_transactions(self, rider_id: UUID, limit: int, offset: int) -> tuple[list[PointsTransaction], int]:
        try:
            rows = await self._db.fetch(
                f"""
                SELECT {TRANSACTION_COLUMNS}
                FROM loyalty_points_transactions
                WHERE rider_id = $1
                ORDER BY created_at DESC
                LIMIT $2 OFFSET $3
                """,
                rider_id, limit, offset,
            )
            total = await self._db.fetchval(
                "SELECT COUNT(*) FROM loyalty_points_transactions WHERE rider_id = $1",
                rider_id,
            )
        except Exception as e:
            await log_error(f"Ошибка получения истории баллов пассажира {rider_id}: {e}")
            raise
        return [PointsTransaction(**dict(row)) for row in rows], int(total or 0)

    @staticmethod
    def _row_to_account(row: Record | dict[str, Any]) -> RiderLoyalty:
        return RiderLoyalty(**dict(row))
