# src/core/giftcards/repository.py
"""
Репозиторий подарочных карт и журнала списаний.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import asyncpg
from asyncpg import Connection, Record

from src.common.constants import GiftCardStatus
from src.common.errors import ConflictError
from src.common.logger import log_error
from src.common.money import to_money
from src.core.giftcards.models import GiftCard, GiftCardTransaction
from src.infra.database import DatabaseManager, affected_rows


CARD_COLUMNS = """
    id, code, card_type, status, original_amount, remaining_amount, currency,
    purchaser_id, recipient_id, recipient_email, recipient_name,
    personal_message, design_template, expires_at, redeemed_at,
    created_at, updated_at
"""

TRANSACTION_COLUMNS = """
    id, card_id, user_id, ride_id, amount,
    balance_before, balance_after, description, created_at
"""


def _card_args(card: GiftCard) -> tuple:
    return (
        card.id,
        card.code,
        card.card_type.value,
        card.status.value,
        card.original_amount,
        card.remaining_amount,
        card.currency,
        card.purchaser_id,
        card.recipient_id,
        card.recipient_email,
        card.recipient_name,
        card.personal_message,
        card.design_template,
        card.expires_at,
        card.redeemed_at,
        card.created_at,
        card.updated_at,
    )


INSERT_CARD_SQL = f"""
    INSERT INTO gift_cards ({CARD_COLUMNS})
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17)
"""


class GiftCardRepository:
    """Подарочные карты."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def create(self, card: GiftCard) -> GiftCard:
        """
        Raises:
            ConflictError: код уже занят
        """
        try:
            await self._db.execute(INSERT_CARD_SQL, *_card_args(card))
        except asyncpg.exceptions.UniqueViolationError:
            raise ConflictError("gift card code collision")
        except Exception as e:
            await log_error(f"Ошибка создания подарочной карты: {e}")
            raise
        return card

    async def create_many(self, cards: list[GiftCard]) -> list[GiftCard]:
        """Создаёт пачку карт в одной транзакции: либо все, либо ни одной."""
        try:
            async with self._db.transaction() as conn:
                await conn.executemany(INSERT_CARD_SQL, [_card_args(card) for card in cards])
        except asyncpg.exceptions.UniqueViolationError:
            raise ConflictError("gift card code collision, please retry")
        except Exception as e:
            await log_error(f"Ошибка пакетного создания {len(cards)} подарочных карт: {e}")
            raise
        return cards

    async def get_by_id(self, card_id: UUID) -> Optional[GiftCard]:
        try:
            row = await self._db.fetchrow(f"SELECT {CARD_COLUMNS} FROM gift_cards WHERE id = $1", card_id)
        except Exception as e:
            await log_error(f"Ошибка получения подарочной карты {card_id}: {e}")
            raise
        return self._row_to_card(row) if row else None

    async def get_by_code(self, code: str) -> Optional[GiftCard]:
        try:
            row = await self._db.fetchrow(f"SELECT {CARD_COLUMNS} FROM gift_cards WHERE code = $1", code)
        except Exception as e:
            await log_error(f"Ошибка поиска подарочной карты по коду: {e}")
            raise
        return self._row_to_card(row) if row else None

    async def assign_recipient(self, card_id: UUID, user_id: UUID, redeemed_at: datetime) -> bool:
        """
        Привязывает активную карту к пользователю, если она ещё ничья.
        False, если карту уже забрали.
        """
        try:
            status = await self._db.execute(
                """
                UPDATE gift_cards
                SET recipient_id = $2, redeemed_at = $3, updated_at = NOW()
                WHERE id = $1 AND status = 'active' AND recipient_id IS NULL
                """,
                card_id, user_id, redeemed_at,
            )
        except Exception as e:
            await log_error(f"Ошибка активации подарочной карты {card_id}: {e}")
            raise
        return affected_rows(status) == 1

    async def deduct(self, card_id: UUID, amount: Decimal, conn: Optional[Connection] = None) -> Optional[Decimal]:
        """
        Списание как compare-and-swap: проходит, только если карта активна
        и остаток не меньше amount. На нуле карта становится redeemed
        в том же UPDATE.

        Returns:
            Новый остаток или None, если условие не выполнилось
        """
        executor = conn or self._db
        try:
            value = await executor.fetchval(
                """
                UPDATE gift_cards
                SET remaining_amount = remaining_amount - $2,
                    status = CASE WHEN remaining_amount - $2 = 0 THEN 'redeemed' ELSE status END,
                    updated_at = NOW()
                WHERE id = $1 AND status = 'active' AND remaining_amount >= $2
                RETURNING remaining_amount
                """,
                card_id, amount,
            )
        except Exception as e:
            await log_error(f"Ошибка списания {amount} с подарочной карты {card_id}: {e}")
            raise
        return to_money(value) if value is not None else None

    async def list_active_by_recipient(self, user_id: UUID, now: datetime) -> list[GiftCard]:
        """Действующие карты пользователя, старые первыми (FIFO)."""
        try:
            rows = await self._db.fetch(
                f"""
                SELECT {CARD_COLUMNS}
                FROM gift_cards
                WHERE recipient_id = $1 AND status = 'active' AND remaining_amount > 0
                  AND (expires_at IS NULL OR expires_at > $2)
                ORDER BY created_at ASC
                """,
                user_id, now,
            )
        except Exception as e:
            await log_error(f"Ошибка получения карт пользователя {user_id}: {e}")
            raise
        return [self._row_to_card(row) for row in rows]

    async def list_by_purchaser(self, user_id: UUID) -> list[GiftCard]:
        try:
            rows = await self._db.fetch(
                f"""
                SELECT {CARD_COLUMNS}
                FROM gift_cards
                WHERE purchaser_id = $1
                ORDER BY created_at DESC
                """,
                user_id,
            )
        except Exception as e:
            await log_error(f"Ошибка получения купленных карт пользователя {user_id}: {e}")
            raise
        return [self._row_to_card(row) for row in rows]

    async def total_balance(self, user_id: UUID, now: datetime) -> Decimal:
        try:
            value = await self._db.fetchval(
                """
                SELECT COALESCE(SUM(remaining_amount), 0)
                FROM gift_cards
                WHERE recipient_id = $1 AND status = 'active' AND remaining_amount > 0
                  AND (expires_at IS NULL OR expires_at > $2)
                """,
                user_id, now,
            )
        except Exception as e:
            await log_error(f"Ошибка расчёта баланса карт пользователя {user_id}: {e}")
            raise
        return to_money(value)

    async def expire_overdue(self, now: datetime) -> int:
        """Помечает просроченные активные карты. Возвращает их число."""
        try:
            status = await self._db.execute(
                """
                UPDATE gift_cards
                SET status = 'expired', updated_at = NOW()
                WHERE status = 'active' AND expires_at IS NOT NULL AND expires_at < $1
                """,
                now,
            )
        except Exception as e:
            await log_error(f"Ошибка истечения подарочных карт: {e}")
            raise
        return affected_rows(status)

    # =========================================================================
    # ЖУРНАЛ СПИСАНИЙ
    # =========================================================================

    async def create_transaction(
        self,
        txn: GiftCardTransaction,
        conn: Optional[Connection] = None,
    ) -> GiftCardTransaction:
        executor = conn or self._db
        try:
            await executor.execute(
                f"""
                INSERT INTO gift_card_transactions ({TRANSACTION_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                """,
                txn.id,
                txn.card_id,
                txn.user_id,
                txn.ride_id,
                txn.amount,
                txn.balance_before,
                txn.balance_after,
                txn.description,
                txn.created_at,
            )
        except Exception as e:
            await log_error(f"Ошибка записи операции по карте {txn.card_id}: {e}")
            raise
        return txn

    async def list_transactions_by_user(self, user_id: UUID, limit: int) -> list[GiftCardTransaction]:
        try:
            rows = await self._db.fetch(
                f"""
                SELECT {TRANSACTION_COLUMNS}
                FROM gift_card_transactions
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                user_id, limit,
            )
        except Exception as e:
            await log_error(f"Ошибка получения операций по картам пользователя {user_id}: {e}")
            raise
        return [self._row_to_transaction(row) for row in rows]

    @staticmethod
    def _row_to_card(row: Record | dict[str, Any]) -> GiftCard:
        data = dict(row)
        data["original_amount"] = to_money(data["original_amount"])
        data["remaining_amount"] = to_money(data["remaining_amount"])
        data["status"] = GiftCardStatus(data["status"])
        return GiftCard(**data)

    @staticmethod
    def _row_to_transaction(row: Record | dict[str, Any]) -> GiftCardTransaction:
        data = dict(row)
        for key in ("amount", "balance_before", "balance_after"):
            data[key] = to_money(data[key])
        return GiftCardTransaction(**data)
