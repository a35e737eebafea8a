# src/core/giftcards/models.py
"""
Модели подарочных карт и операций по ним.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from src.common.constants import GiftCardStatus, GiftCardType
from src.shared.models.common import Money


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GiftCard(BaseModel):
    """Предоплаченная подарочная карта."""

    id: UUID = Field(default_factory=uuid4)
    code: str = Field(..., description="Код погашения XXXX-XXXX-XXXX-XXXX")
    card_type: GiftCardType
    status: GiftCardStatus = GiftCardStatus.ACTIVE
    original_amount: Money = Field(..., gt=0)
    remaining_amount: Money = Field(..., ge=0)
    currency: str = "USD"
    purchaser_id: Optional[UUID] = Field(None, description="Кто купил")
    recipient_id: Optional[UUID] = Field(None, description="Кто активировал")
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    personal_message: Optional[str] = None
    design_template: Optional[str] = None
    expires_at: Optional[datetime] = None
    redeemed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    class Config:
        from_attributes = True

    def is_usable(self, now: datetime) -> bool:
        """Активна, с остатком и не просрочена."""
        return (
            self.status == GiftCardStatus.ACTIVE
            and self.remaining_amount > 0
            and (self.expires_at is None or self.expires_at > now)
        )


class GiftCardTransaction(BaseModel):
    """Списание с карты."""

    id: UUID = Field(default_factory=uuid4)
    card_id: UUID
    user_id: UUID
    ride_id: Optional[UUID] = None
    amount: Money = Field(..., gt=0)
    balance_before: Money
    balance_after: Money
    description: str = ""
    created_at: datetime = Field(default_factory=_utc_now)

    class Config:
        from_attributes = True


# =============================================================================
# ЗАПРОСЫ И ОТВЕТЫ
# =============================================================================

class PurchaseGiftCardRequest(BaseModel):
    """Тело POST /gift-cards. Диапазон суммы проверяет сервис."""

    amount: Decimal
    currency: str = ""
    recipient_email: Optional[str] = Field(None, max_length=255)
    recipient_name: Optional[str] = Field(None, max_length=255)
    personal_message: Optional[str] = Field(None, max_length=1000)
    design_template: Optional[str] = Field(None, max_length=64)


class RedeemGiftCardRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)


class UseBalanceRequest(BaseModel):
    """Тело POST /gift-cards/use."""

    ride_id: UUID
    amount: Decimal


class UseBalanceResponse(BaseModel):
    deducted: Money
    currency: str = "USD"


class CheckBalanceResponse(BaseModel):
    """Публичная проверка баланса по коду."""

    code: str
    status: GiftCardStatus
    original_amount: Money
    remaining_amount: Money
    currency: str
    expires_at: Optional[datetime] = None
    is_valid: bool


class GiftCardSummary(BaseModel):
    """Карты пользователя и последние списания."""

    total_balance: Money = Decimal("0.00")
    active_cards: int = 0
    cards: list[GiftCard] = Field(default_factory=list)
    recent_transactions: list[GiftCardTransaction] = Field(default_factory=list)


class GiftCardListResponse(BaseModel):
    cards: list[GiftCard] = Field(default_factory=list)
    count: int = 0


class CreateBulkRequest(BaseModel):
    """Тело POST /admin/gift-cards/bulk."""

    count: int
    amount: Decimal
    currency: str = ""
    card_type: GiftCardType
    expires_in_days: Optional[int] = Field(None, ge=1)


class BulkCreateResponse(BaseModel):
    cards: list[GiftCard] = Field(default_factory=list)
    count: int = 0
    total_value: Money = Decimal("0.00")


class ExpireCardsResponse(BaseModel):
    expired: int
