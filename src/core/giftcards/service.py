# src/core/giftcards/service.py
"""
Сервис подарочных карт: покупка, активация, списание за поездки.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from src.common.constants import GiftCardStatus, GiftCardType, TypeMsg
from src.common.errors import BadRequestError, ConflictError, NotFoundError
from src.common.logger import log_info, log_warning
from src.common.money import ZERO, format_money, to_money
from src.common.references import generate_gift_card_code
from src.core.giftcards.models import (
    BulkCreateResponse,
    CheckBalanceResponse,
    CreateBulkRequest,
    GiftCard,
    GiftCardListResponse,
    GiftCardSummary,
    GiftCardTransaction,
    PurchaseGiftCardRequest,
    RedeemGiftCardRequest,
)
from src.core.giftcards.repository import GiftCardRepository
from src.core.periods import PeriodResolver
from src.infra.database import DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes

# Сколько раз генерировать новый код при коллизии
CODE_ATTEMPTS = 3


class GiftCardService:
    """Сервис подарочных карт."""

    def __init__(
        self,
        db: DatabaseManager,
        event_bus: EventBus,
        periods: Optional[PeriodResolver] = None,
    ) -> None:
        from src.config import settings

        self._db = db
        self._repo = GiftCardRepository(db)
        self._event_bus = event_bus
        self._periods = periods or PeriodResolver(default_timezone=settings.domain.TIMEZONE)

        self.currency = settings.domain.DEFAULT_CURRENCY
        self.min_amount = to_money(settings.gift_cards.MIN_PURCHASE_AMOUNT)
        self.max_amount = to_money(settings.gift_cards.MAX_PURCHASE_AMOUNT)
        self.validity_days = settings.gift_cards.VALIDITY_DAYS
        self.bulk_max_count = settings.gift_cards.BULK_MAX_COUNT
        self.recent_limit = settings.gift_cards.RECENT_TRANSACTIONS_LIMIT
        self.deduct_attempts = settings.gift_cards.DEDUCT_RETRY_ATTEMPTS

    # =========================================================================
    # ПОКУПКА И АКТИВАЦИЯ
    # =========================================================================

    async def purchase(self, purchaser_id: UUID, request: PurchaseGiftCardRequest) -> GiftCard:
        """
        Покупка карты: активна сразу, действует год.

        Raises:
            BadRequestError: сумма вне допустимого диапазона
        """
        amount = to_money(request.amount)
        if amount < self.min_amount or amount > self.max_amount:
            raise BadRequestError(
                f"amount must be between {format_money(self.min_amount)} and {format_money(self.max_amount)}"
            )

        now = self._periods.now()
        card = None
        for attempt in range(1, CODE_ATTEMPTS + 1):
            candidate = GiftCard(
                id=uuid4(),
                code=generate_gift_card_code(),
                card_type=GiftCardType.PURCHASED,
                status=GiftCardStatus.ACTIVE,
                original_amount=amount,
                remaining_amount=amount,
                currency=request.currency or self.currency,
                purchaser_id=purchaser_id,
                recipient_email=request.recipient_email,
                recipient_name=request.recipient_name,
                personal_message=request.personal_message,
                design_template=request.design_template,
                expires_at=now + timedelta(days=self.validity_days),
                created_at=now,
                updated_at=now,
            )
            try:
                card = await self._repo.create(candidate)
                break
            except ConflictError:
                if attempt == CODE_ATTEMPTS:
                    raise
                await log_warning(f"Коллизия кода подарочной карты (попытка {attempt}/{CODE_ATTEMPTS})")

        await log_info(f"Куплена подарочная карта {card.id} на {card.original_amount}", type_msg=TypeMsg.INFO)
        await self._event_bus.publish(
            DomainEvent(
                event_type=EventTypes.GIFT_CARD_PURCHASED,
                payload={
                    "card_id": str(card.id),
                    "purchaser_id": str(purchaser_id),
                    "amount": format_money(card.original_amount),
                    "currency": card.currency,
                    "recipient_email": card.recipient_email,
                    "recipient_name": card.recipient_name,
                },
            )
        )
        return card

    async def redeem(self, user_id: UUID, request: RedeemGiftCardRequest) -> GiftCard:
        """
        Привязывает карту к пользователю.

        Raises:
            NotFoundError: кода нет
            BadRequestError: карта неактивна, пуста, просрочена или чужая
        """
        card = await self._repo.get_by_code(request.code.strip().upper())
        if card is None:
            raise NotFoundError("gift card")

        now = self._periods.now()
        if card.status != GiftCardStatus.ACTIVE:
            raise BadRequestError("gift card is not active")
        if card.remaining_amount <= ZERO:
            raise BadRequestError("gift card has no remaining balance")
        if card.expires_at is not None and card.expires_at < now:
            raise BadRequestError("gift card has expired")
        if card.recipient_id is not None and card.recipient_id != user_id:
            raise BadRequestError("gift card already redeemed by another user")

        if card.recipient_id is None:
            if not await self._repo.assign_recipient(card.id, user_id, now):
                # Карту забрали параллельно, смотрим кто
                fresh = await self._repo.get_by_id(card.id)
                if fresh is None or fresh.recipient_id != user_id:
                    raise BadRequestError("gift card already redeemed by another user")
                return fresh

            card = card.model_copy(update={"recipient_id": user_id, "redeemed_at": now})
            await self._event_bus.publish(
                DomainEvent(
                    event_type=EventTypes.GIFT_CARD_REDEEMED,
                    payload={
                        "card_id": str(card.id),
                        "user_id": str(user_id),
                        "amount": format_money(card.remaining_amount),
                        "currency": card.currency,
                    },
                )
            )

        return card

    async def check_balance(self, code: str) -> CheckBalanceResponse:
        """
        Публичная проверка баланса по коду.

        Raises:
            NotFoundError: кода нет
        """
        card = await self._repo.get_by_code(code.strip().upper())
        if card is None:
            raise NotFoundError("gift card")

        return CheckBalanceResponse(
            code=card.code,
            status=card.status,
            original_amount=card.original_amount,
            remaining_amount=card.remaining_amount,
            currency=card.currency,
            expires_at=card.expires_at,
            is_valid=card.is_usable(self._periods.now()),
        )

    async def get_my_summary(self, user_id: UUID) -> GiftCardSummary:
        now = self._periods.now()
        cards = await self._repo.list_active_by_recipient(user_id, now)
        total = await self._repo.total_balance(user_id, now)
        transactions = await self._repo.list_transactions_by_user(user_id, self.recent_limit)

        return GiftCardSummary(
            total_balance=total,
            active_cards=len(cards),
            cards=cards,
            recent_transactions=transactions,
        )

    async def get_purchased(self, user_id: UUID) -> GiftCardListResponse:
        cards = await self._repo.list_by_purchaser(user_id)
        return GiftCardListResponse(cards=cards, count=len(cards))

    # =========================================================================
    # СПИСАНИЕ
    # =========================================================================

    async def use_balance(self, user_id: UUID, ride_id: UUID, amount: Decimal) -> Decimal:
        """
        Оплачивает поездку с карт пользователя, старые карты первыми.

        Возвращает сколько реально списано (может быть меньше amount).
        Карта, списание с которой не удалось, пропускается.

        Raises:
            BadRequestError: сумма не положительна
        """
        owed = to_money(amount)
        if owed <= ZERO:
            raise BadRequestError("amount must be positive")

        cards = await self._repo.list_active_by_recipient(user_id, self._periods.now())

        total = ZERO
        for card in cards:
            if owed <= ZERO:
                break
            deducted = await self._deduct_from_card(card, user_id, ride_id, owed)
            total += deducted
            owed -= deducted

        if total > ZERO:
            await log_info(f"Списано {total} с подарочных карт пользователя {user_id} за поездку {ride_id}", type_msg=TypeMsg.INFO)
        return total

    async def _deduct_from_card(self, card: GiftCard, user_id: UUID, ride_id: UUID, owed: Decimal) -> Decimal:
        """
        Одна карта: CAS-списание min(остаток, долг). Если CAS не прошёл,
        перечитывает карту и повторяет со свежим остатком.
        """
        remaining = card.remaining_amount
        for _ in range(self.deduct_attempts):
            delta = to_money(min(remaining, owed))
            if delta <= ZERO:
                return ZERO

            async with self._db.transaction() as conn:
                new_remaining = await self._repo.deduct(card.id, delta, conn=conn)
                if new_remaining is not None:
                    await self._repo.create_transaction(
                        GiftCardTransaction(
                            id=uuid4(),
                            card_id=card.id,
                            user_id=user_id,
                            ride_id=ride_id,
                            amount=delta,
                            balance_before=new_remaining + delta,
                            balance_after=new_remaining,
                            description="Ride payment",
                            created_at=self._periods.now(),
                        ),
                        conn=conn,
                    )
                    return delta

            fresh = await self._repo.get_by_id(card.id)
            if fresh is None or fresh.status != GiftCardStatus.ACTIVE:
                return ZERO
            remaining = fresh.remaining_amount

        await log_warning(f"Подарочная карта {card.id} пропущена: остаток менялся {self.deduct_attempts} раз подряд")
        return ZERO

    # =========================================================================
    # АДМИНИСТРИРОВАНИЕ
    # =========================================================================

    async def create_bulk(self, request: CreateBulkRequest) -> BulkCreateResponse:
        """
        Пакетный выпуск карт (корпоративные и промо).

        Raises:
            BadRequestError: количество или сумма вне допустимого
        """
        if request.count < 1 or request.count > self.bulk_max_count:
            raise BadRequestError(f"count must be between 1 and {self.bulk_max_count}")
        amount = to_money(request.amount)
        if amount < self.min_amount:
            raise BadRequestError(f"amount must be at least {format_money(self.min_amount)}")

        now = self._periods.now()
        expires_at = now + timedelta(days=request.expires_in_days) if request.expires_in_days else None
        cards = [
            GiftCard(
                id=uuid4(),
                code=generate_gift_card_code(),
                card_type=request.card_type,
                status=GiftCardStatus.ACTIVE,
                original_amount=amount,
                remaining_amount=amount,
                currency=request.currency or self.currency,
                expires_at=expires_at,
                created_at=now,
                updated_at=now,
            )
            for _ in range(request.count)
        ]

        created = await self._repo.create_many(cards)
        await log_info(f"Выпущено {len(created)} подарочных карт по {amount}", type_msg=TypeMsg.INFO)

        return BulkCreateResponse(
            cards=created,
            count=len(created),
            total_value=to_money(amount * len(created)),
        )

    async def expire_cards(self) -> int:
        """Истекает просроченные карты. Возвращает их число."""
        expired = await self._repo.expire_overdue(self._periods.now())
        if expired:
            await log_info(f"Истекло подарочных карт: {expired}", type_msg=TypeMsg.INFO)
        return expired
