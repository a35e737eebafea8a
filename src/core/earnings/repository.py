# src/core/earnings/repository.py
"""
Репозитории начислений, выплат, банковских счетов и целей.

Единственное место, где живёт SQL этих таблиц. Методы принимают
необязательное соединение conn, чтобы сервис мог собрать несколько
вызовов в одну транзакцию.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import asyncpg
from asyncpg import Connection, Record

from src.common.constants import EarningType, PayoutStatus, TypeMsg
from src.common.errors import ConflictError
from src.common.logger import log_error, log_info
from src.common.money import to_money
from src.core.earnings.models import (
    BankAccount,
    DailyEarning,
    Earning,
    EarningBreakdown,
    EarningGoal,
    EarningsTotals,
    Payout,
)
from src.infra.database import DatabaseManager, affected_rows


EARNING_COLUMNS = """
    id, driver_id, ride_id, delivery_id, type,
    gross_amount, commission, net_amount, currency, description,
    is_paid_out, payout_id, created_at
"""

PAYOUT_COLUMNS = """
    id, driver_id, amount, currency, method, status, bank_account_id,
    reference, earning_count, period_start, period_end,
    processed_at, failure_reason, created_at, updated_at
"""

BANK_ACCOUNT_COLUMNS = """
    id, driver_id, bank_name, account_holder, account_number,
    routing_number, iban, swift_code, currency,
    is_primary, is_verified, created_at, updated_at
"""

# $2 во всех выборках счетов: ключ pgcrypto
BANK_ACCOUNT_SELECT = """
    id, driver_id, bank_name, account_holder,
    pgp_sym_decrypt(account_number, $2) AS account_number,
    routing_number, iban, swift_code, currency,
    is_primary, is_verified, created_at, updated_at
"""

GOAL_COLUMNS = """
    id, driver_id, target_amount, period, current_amount,
    currency, is_active, created_at, updated_at
"""


class EarningRepository:
    """Начисления водителей (append-and-mark)."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Инициализация репозитория.

        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def append(self, earning: Earning, conn: Optional[Connection] = None) -> Earning:
        """
        Добавляет начисление.

        Raises:
            ConflictError: начисление с таким id уже есть
        """
        executor = conn or self._db
        try:
            await executor.execute(
                f"""
                INSERT INTO driver_earnings ({EARNING_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
                """,
                earning.id,
                earning.driver_id,
                earning.ride_id,
                earning.delivery_id,
                earning.type.value,
                earning.gross_amount,
                earning.commission,
                earning.net_amount,
                earning.currency,
                earning.description,
                earning.is_paid_out,
                earning.payout_id,
                earning.created_at,
            )
        except asyncpg.exceptions.UniqueViolationError:
            raise ConflictError(f"earning {earning.id} already exists")
        except Exception as e:
            await log_error(f"Ошибка записи начисления водителю {earning.driver_id}: {e}")
            raise

        await log_info(
            f"Начисление {earning.type.value} {earning.net_amount} водителю {earning.driver_id}",
            type_msg=TypeMsg.DEBUG,
        )
        return earning

    async def list_for_period(
        self,
        driver_id: UUID,
        start: datetime,
        end: datetime,
        limit: int,
        offset: int,
    ) -> tuple[list[Earning], int]:
        """
        Страница начислений за [start, end), новые первыми.

        Returns:
            (страница, общее количество)
        """
        try:
            rows = await self._db.fetch(
                f"""
                SELECT {EARNING_COLUMNS}
                FROM driver_earnings
                WHERE driver_id = $1 AND created_at >= $2 AND created_at < $3
                ORDER BY created_at DESC
                LIMIT $4 OFFSET $5
                """,
                driver_id, start, end, limit, offset,
            )
            total = await self._db.fetchval(
                """
                SELECT COUNT(*) FROM driver_earnings
                WHERE driver_id = $1 AND created_at >= $2 AND created_at < $3
                """,
                driver_id, start, end,
            )
        except Exception as e:
            await log_error(f"Ошибка получения истории начислений водителя {driver_id}: {e}")
            raise

        return [self._row_to_earning(row) for row in rows], int(total or 0)

    async def summarize(self, driver_id: UUID, start: datetime, end: datetime) -> EarningsTotals:
        """Суммы gross/net/commission и чистые суммы по основным типам."""
        try:
            row = await self._db.fetchrow(
                """
                SELECT
                    COALESCE(SUM(gross_amount), 0) AS gross,
                    COALESCE(SUM(commission), 0) AS commission,
                    COALESCE(SUM(net_amount), 0) AS net,
                    COALESCE(SUM(net_amount) FILTER (WHERE type = 'tip'), 0) AS tips,
                    COALESCE(SUM(net_amount) FILTER (WHERE type = 'bonus'), 0) AS bonuses,
                    COALESCE(SUM(net_amount) FILTER (WHERE type = 'surge'), 0) AS surge,
                    COALESCE(SUM(net_amount) FILTER (WHERE type = 'wait_time'), 0) AS wait_time,
                    COALESCE(SUM(net_amount) FILTER (WHERE type = 'delivery'), 0) AS delivery,
                    COUNT(*) FILTER (WHERE type = 'ride_fare') AS ride_count,
                    COUNT(*) FILTER (WHERE type = 'delivery') AS delivery_count
                FROM driver_earnings
                WHERE driver_id = $1 AND created_at >= $2 AND created_at < $3
                """,
                driver_id, start, end,
            )
        except Exception as e:
            await log_error(f"Ошибка расчёта сводки водителя {driver_id}: {e}")
            raise

        if row is None:
            return EarningsTotals()

        return EarningsTotals(
            gross=to_money(row["gross"]),
            commission=to_money(row["commission"]),
            net=to_money(row["net"]),
            tips=to_money(row["tips"]),
            bonuses=to_money(row["bonuses"]),
            surge=to_money(row["surge"]),
            wait_time=to_money(row["wait_time"]),
            delivery=to_money(row["delivery"]),
            ride_count=int(row["ride_count"] or 0),
            delivery_count=int(row["delivery_count"] or 0),
        )

    async def breakdown(self, driver_id: UUID, start: datetime, end: datetime) -> list[EarningBreakdown]:
        """Чистые суммы по типам, по убыванию суммы."""
        try:
            rows = await self._db.fetch(
                """
                SELECT type, SUM(net_amount) AS amount, COUNT(*) AS count
                FROM driver_earnings
                WHERE driver_id = $1 AND created_at >= $2 AND created_at < $3
                GROUP BY type
                ORDER BY amount DESC
                """,
                driver_id, start, end,
            )
        except Exception as e:
            await log_error(f"Ошибка расчёта разбивки начислений водителя {driver_id}: {e}")
            raise

        return [
            EarningBreakdown(type=EarningType(row["type"]), amount=to_money(row["amount"]), count=int(row["count"]))
            for row in rows
        ]

    async def daily_rollup(
        self,
        driver_id: UUID,
        start: datetime,
        end: datetime,
        tz_name: str,
    ) -> list[DailyEarning]:
        """
        Одна строка на локальный календарный день с хотя бы одним начислением.
        Дни по убыванию.
        """
        try:
            rows = await self._db.fetch(
                """
                SELECT
                    to_char((created_at AT TIME ZONE $4)::date, 'YYYY-MM-DD') AS day,
                    SUM(gross_amount) AS gross,
                    SUM(net_amount) AS net,
                    SUM(commission) AS commission,
                    COALESCE(SUM(net_amount) FILTER (WHERE type = 'tip'), 0) AS tips,
                    COUNT(*) FILTER (WHERE type = 'ride_fare') AS ride_count
                FROM driver_earnings
                WHERE driver_id = $1 AND created_at >= $2 AND created_at < $3
                GROUP BY 1
                ORDER BY 1 DESC
                """,
                driver_id, start, end, tz_name,
            )
        except Exception as e:
            await log_error(f"Ошибка расчёта дневной статистики водителя {driver_id}: {e}")
            raise

        return [
            DailyEarning(
                date=row["day"],
                gross_amount=to_money(row["gross"]),
                net_amount=to_money(row["net"]),
                commission=to_money(row["commission"]),
                tips=to_money(row["tips"]),
                ride_count=int(row["ride_count"] or 0),
            )
            for row in rows
        ]

    async def unpaid_total(self, driver_id: UUID, conn: Optional[Connection] = None) -> Decimal:
        """Сумма net по невыплаченным начислениям, 0 если их нет."""
        executor = conn or self._db
        try:
            value = await executor.fetchval(
                """
                SELECT COALESCE(SUM(net_amount), 0)
                FROM driver_earnings
                WHERE driver_id = $1 AND is_paid_out = FALSE
                """,
                driver_id,
            )
        except Exception as e:
            await log_error(f"Ошибка расчёта невыплаченного баланса водителя {driver_id}: {e}")
            raise

        return to_money(value)

    async def mark_paid(
        self,
        driver_id: UUID,
        payout_id: UUID,
        cutoff: datetime,
        conn: Optional[Connection] = None,
    ) -> tuple[int, Decimal]:
        """
        Привязывает к выплате все невыплаченные начисления водителя до cutoff.

        Returns:
            (число помеченных строк, сумма их net)
        """
        executor = conn or self._db
        try:
            row = await executor.fetchrow(
                """
                WITH marked AS (
                    UPDATE driver_earnings
                    SET is_paid_out = TRUE, payout_id = $2
                    WHERE driver_id = $1 AND is_paid_out = FALSE AND created_at < $3
                    RETURNING net_amount
                )
                SELECT COUNT(*) AS count, COALESCE(SUM(net_amount), 0) AS total
                FROM marked
                """,
                driver_id, payout_id, cutoff,
            )
        except Exception as e:
            await log_error(f"Ошибка пометки начислений водителя {driver_id} выплатой {payout_id}: {e}")
            raise

        if row is None:
            return 0, to_money(0)
        return int(row["count"]), to_money(row["total"])

    @staticmethod
    def _row_to_earning(row: Record | dict[str, Any]) -> Earning:
        return Earning(
            id=row["id"],
            driver_id=row["driver_id"],
            ride_id=row["ride_id"],
            delivery_id=row["delivery_id"],
            type=EarningType(row["type"]),
            gross_amount=to_money(row["gross_amount"]),
            commission=to_money(row["commission"]),
            net_amount=to_money(row["net_amount"]),
            currency=row["currency"],
            description=row["description"] or "",
            is_paid_out=row["is_paid_out"],
            payout_id=row["payout_id"],
            created_at=row["created_at"],
        )


class PayoutRepository:
    """Выплаты водителям."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(self, payout: Payout, conn: Optional[Connection] = None) -> Payout:
        """Вставляет строку выплаты."""
        executor = conn or self._db
        try:
            await executor.execute(
                f"""
                INSERT INTO driver_payouts ({PAYOUT_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15)
                """,
                payout.id,
                payout.driver_id,
                payout.amount,
                payout.currency,
                payout.method.value,
                payout.status.value,
                payout.bank_account_id,
                payout.reference,
                payout.earning_count,
                payout.period_start,
                payout.period_end,
                payout.processed_at,
                payout.failure_reason,
                payout.created_at,
                payout.updated_at,
            )
        except asyncpg.exceptions.UniqueViolationError:
            raise ConflictError(f"payout reference {payout.reference} already exists")
        except Exception as e:
            await log_error(f"Ошибка создания выплаты водителю {payout.driver_id}: {e}")
            raise
        return payout

    async def set_totals(
        self,
        payout_id: UUID,
        amount: Decimal,
        earning_count: int,
        conn: Optional[Connection] = None,
    ) -> Optional[Payout]:
        """Фиксирует сумму и число фактически поглощённых начислений."""
        executor = conn or self._db
        try:
            row = await executor.fetchrow(
                f"""
                UPDATE driver_payouts
                SET amount = $2, earning_count = $3, updated_at = NOW()
                WHERE id = $1
                RETURNING {PAYOUT_COLUMNS}
                """,
                payout_id, amount, earning_count,
            )
        except Exception as e:
            await log_error(f"Ошибка обновления итогов выплаты {payout_id}: {e}")
            raise

        return self._row_to_payout(row) if row else None

    async def get_by_id(self, payout_id: UUID) -> Optional[Payout]:
        try:
            row = await self._db.fetchrow(
                f"SELECT {PAYOUT_COLUMNS} FROM driver_payouts WHERE id = $1",
                payout_id,
            )
        except Exception as e:
            await log_error(f"Ошибка получения выплаты {payout_id}: {e}")
            raise

        return self._row_to_payout(row) if row else None

    async def list_by_driver(self, driver_id: UUID, limit: int, offset: int) -> tuple[list[Payout], int]:
        """Выплаты водителя, новые первыми, с общим количеством."""
        try:
            rows = await self._db.fetch(
                f"""
                SELECT {PAYOUT_COLUMNS}
                FROM driver_payouts
                WHERE driver_id = $1
                ORDER BY created_at DESC
                LIMIT $2 OFFSET $3
                """,
                driver_id, limit, offset,
            )
            total = await self._db.fetchval(
                "SELECT COUNT(*) FROM driver_payouts WHERE driver_id = $1",
                driver_id,
            )
        except Exception as e:
            await log_error(f"Ошибка получения истории выплат водителя {driver_id}: {e}")
            raise

        return [self._row_to_payout(row) for row in rows], int(total or 0)

    async def update_status(
        self,
        payout_id: UUID,
        expected_status: PayoutStatus,
        new_status: PayoutStatus,
        failure_reason: Optional[str] = None,
        processed_at: Optional[datetime] = None,
    ) -> Optional[Payout]:
        """
        Переводит выплату в новый статус, только если текущий равен expected_status.

        Returns:
            Обновлённая выплата или None, если статус уже сменился
        """
        try:
            row = await self._db.fetchrow(
                f"""
                UPDATE driver_payouts
                SET status = $3,
                    failure_reason = COALESCE($4, failure_reason),
                    processed_at = COALESCE($5, processed_at),
                    updated_at = NOW()
                WHERE id = $1 AND status = $2
                RETURNING {PAYOUT_COLUMNS}
                """,
                payout_id,
                expected_status.value,
                new_status.value,
                failure_reason,
                processed_at,
            )
        except Exception as e:
            await log_error(f"Ошибка смены статуса выплаты {payout_id}: {e}")
            raise

        return self._row_to_payout(row) if row else None

    @staticmethod
    def _row_to_payout(row: Record | dict[str, Any]) -> Payout:
        data = dict(row)
        data["amount"] = to_money(data["amount"])
        return Payout(**data)


class BankAccountRepository:
    """
    Банковские счета водителей.
    Номер счёта хранится зашифрованным (pgp_sym_encrypt), расшифровывается только в SELECT.
    """

    def __init__(self, db: DatabaseManager, encryption_key: Optional[str] = None) -> None:
        if encryption_key is None:
            from src.config import settings
            encryption_key = settings.earnings.BANK_ACCOUNT_ENCRYPTION_KEY
        self._db = db
        self._key = encryption_key

    async def add(self, account: BankAccount) -> BankAccount:
        """
        Добавляет счёт. Если он основной, в той же транзакции
        снимает флаг is_primary с остальных счетов водителя.

        Raises:
            ConflictError: параллельно добавлен другой основной счёт
        """
        try:
            async with self._db.transaction() as conn:
                if account.is_primary:
                    await conn.execute(
                        """
                        UPDATE driver_bank_accounts
                        SET is_primary = FALSE, updated_at = NOW()
                        WHERE driver_id = $1 AND is_primary = TRUE
                        """,
                        account.driver_id,
                    )
                await conn.execute(
                    f"""
                    INSERT INTO driver_bank_accounts ({BANK_ACCOUNT_COLUMNS})
                    VALUES ($1, $2, $3, $4, pgp_sym_encrypt($5, $14), $6, $7, $8, $9, $10, $11, $12, $13)
                    """,
                    account.id,
                    account.driver_id,
                    account.bank_name,
                    account.account_holder,
                    account.account_number,
                    account.routing_number,
                    account.iban,
                    account.swift_code,
                    account.currency,
                    account.is_primary,
                    account.is_verified,
                    account.created_at,
                    account.updated_at,
                    self._key,
                )
        except asyncpg.exceptions.UniqueViolationError:
            raise ConflictError("another primary bank account was added concurrently")
        except Exception as e:
            await log_error(f"Ошибка добавления банковского счёта водителю {account.driver_id}: {e}")
            raise

        return account

    async def get_by_id(self, account_id: UUID) -> Optional[BankAccount]:
        """Счёт по id без фильтра по владельцу."""
        try:
            row = await self._db.fetchrow(
                f"SELECT {BANK_ACCOUNT_SELECT} FROM driver_bank_accounts WHERE id = $1",
                account_id, self._key,
            )
        except Exception as e:
            await log_error(f"Ошибка получения банковского счёта {account_id}: {e}")
            raise

        return self._row_to_account(row) if row else None

    async def get_primary(self, driver_id: UUID) -> Optional[BankAccount]:
        try:
            row = await self._db.fetchrow(
                f"""
                SELECT {BANK_ACCOUNT_SELECT}
                FROM driver_bank_accounts
                WHERE driver_id = $1 AND is_primary = TRUE
                """,
                driver_id, self._key,
            )
        except Exception as e:
            await log_error(f"Ошибка получения основного счёта водителя {driver_id}: {e}")
            raise

        return self._row_to_account(row) if row else None

    async def list_by_driver(self, driver_id: UUID) -> list[BankAccount]:
        try:
            rows = await self._db.fetch(
                f"""
                SELECT {BANK_ACCOUNT_SELECT}
                FROM driver_bank_accounts
                WHERE driver_id = $1
                ORDER BY is_primary DESC, created_at DESC
                """,
                driver_id, self._key,
            )
        except Exception as e:
            await log_error(f"Ошибка получения счетов водителя {driver_id}: {e}")
            raise

        return [self._row_to_account(row) for row in rows]

    async def delete(self, account_id: UUID, driver_id: UUID) -> bool:
        """Удаляет счёт владельца. True, если строка была удалена."""
        try:
            status = await self._db.execute(
                "DELETE FROM driver_bank_accounts WHERE id = $1 AND driver_id = $2",
                account_id, driver_id,
            )
        except Exception as e:
            await log_error(f"Ошибка удаления банковского счёта {account_id}: {e}")
            raise

        return affected_rows(status) > 0

    @staticmethod
    def _row_to_account(row: Record | dict[str, Any]) -> BankAccount:
        return BankAccount(**dict(row))


class EarningGoalRepository:
    """Цели водителей по заработку."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def upsert(self, goal: EarningGoal) -> EarningGoal:
        """
        Создаёт активную цель или меняет сумму существующей
        активной цели на тот же период. Накопленный прогресс сохраняется.
        """
        try:
            row = await self._db.fetchrow(
                f"""
                INSERT INTO driver_earning_goals ({GOAL_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                ON CONFLICT (driver_id, period) WHERE is_active = TRUE
                DO UPDATE SET target_amount = EXCLUDED.target_amount,
                              updated_at = EXCLUDED.updated_at
                RETURNING {GOAL_COLUMNS}
                """,
                goal.id,
                goal.driver_id,
                goal.target_amount,
                goal.period.value,
                goal.current_amount,
                goal.currency,
                goal.is_active,
                goal.created_at,
                goal.updated_at,
            )
        except Exception as e:
            await log_error(f"Ошибка сохранения цели водителя {goal.driver_id}: {e}")
            raise

        return self._row_to_goal(row) if row else goal

    async def list_active(self, driver_id: UUID) -> list[EarningGoal]:
        try:
            rows = await self._db.fetch(
                f"""
                SELECT {GOAL_COLUMNS}
                FROM driver_earning_goals
                WHERE driver_id = $1 AND is_active = TRUE
                ORDER BY created_at
                """,
                driver_id,
            )
        except Exception as e:
            await log_error(f"Ошибка получения целей водителя {driver_id}: {e}")
            raise

        return [self._row_to_goal(row) for row in rows]

    async def bump_progress(self, goal_id: UUID, delta: Decimal) -> None:
        """current_amount += delta, но не ниже нуля."""
        try:
            await self._db.execute(
                """
                UPDATE driver_earning_goals
                SET current_amount = GREATEST(current_amount + $2, 0), updated_at = NOW()
                WHERE id = $1
                """,
                goal_id, delta,
            )
        except Exception as e:
            await log_error(f"Ошибка обновления прогресса цели {goal_id}: {e}")
            raise

    @staticmethod
    def _row_to_goal(row: Record | dict[str, Any]) -> EarningGoal:
        data = dict(row)
        data["target_amount"] = to_money(data["target_amount"])
        data["current_amount"] = to_money(data["current_amount"])
        return EarningGoal(**data)
