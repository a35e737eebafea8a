# src/core/earnings/models.py
"""
Модели данных начислений, выплат, банковских счетов и целей.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, computed_field

from src.common.constants import EarningType, GoalPeriod, PayoutMethod, PayoutStatus
from src.common.references import mask_account_number
from src.shared.models.common import Money


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Earning(BaseModel):
    """Одно начисление водителю. Append-only."""

    id: UUID = Field(default_factory=uuid4, description="UUID начисления")
    driver_id: UUID = Field(..., description="UUID водителя")
    ride_id: Optional[UUID] = Field(None, description="Поездка-источник")
    delivery_id: Optional[UUID] = Field(None, description="Доставка-источник")
    type: EarningType = Field(..., description="Тип начисления")

    gross_amount: Money = Field(..., ge=0, description="Валовая сумма")
    commission: Money = Field(Decimal("0.00"), ge=0, description="Комиссия платформы")
    net_amount: Money = Field(..., description="Чистая сумма водителю")
    currency: str = Field("USD", description="Валюта")
    description: str = Field("", description="Описание")

    is_paid_out: bool = Field(False, description="Включено ли в выплату")
    payout_id: Optional[UUID] = Field(None, description="Выплата, поглотившая начисление")
    created_at: datetime = Field(default_factory=_utc_now, description="Время начисления")

    class Config:
        from_attributes = True


class Payout(BaseModel):
    """Выплата водителю."""

    id: UUID = Field(default_factory=uuid4, description="UUID выплаты")
    driver_id: UUID
    amount: Money = Field(..., ge=0)
    currency: str = "USD"
    method: PayoutMethod
    status: PayoutStatus = PayoutStatus.PENDING
    bank_account_id: Optional[UUID] = None
    reference: str = Field(..., description="PAY-XXXXXXXXXX")
    earning_count: int = Field(0, ge=0)
    period_start: datetime
    period_end: datetime
    processed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    class Config:
        from_attributes = True


class BankAccount(BaseModel):
    """
    Банковский счёт водителя.
    Номер счёта наружу не сериализуется, только маска.
    """

    id: UUID = Field(default_factory=uuid4)
    driver_id: UUID
    bank_name: str
    account_holder: str
    account_number: str = Field(..., exclude=True, repr=False)
    routing_number: Optional[str] = None
    iban: Optional[str] = None
    swift_code: Optional[str] = None
    currency: str = "USD"
    is_primary: bool = False
    is_verified: bool = False
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    class Config:
        from_attributes = True

    @computed_field  # type: ignore[misc]
    @property
    def account_number_masked(self) -> str:
        return mask_account_number(self.account_number)


class EarningGoal(BaseModel):
    """Цель по заработку на период."""

    id: UUID = Field(default_factory=uuid4)
    driver_id: UUID
    target_amount: Money = Field(..., gt=0)
    period: GoalPeriod
    current_amount: Money = Field(Decimal("0.00"), ge=0)
    currency: str = "USD"
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    class Config:
        from_attributes = True


# =============================================================================
# ПРОЕКЦИИ
# =============================================================================

class EarningBreakdown(BaseModel):
    """Сумма чистых начислений по типу."""

    type: EarningType
    amount: Money
    count: int


class EarningsTotals(BaseModel):
    """Агрегаты summarize() до сборки ответа."""

    gross: Decimal = Decimal("0.00")
    commission: Decimal = Decimal("0.00")
    net: Decimal = Decimal("0.00")
    tips: Decimal = Decimal("0.00")
    bonuses: Decimal = Decimal("0.00")
    surge: Decimal = Decimal("0.00")
    wait_time: Decimal = Decimal("0.00")
    delivery: Decimal = Decimal("0.00")
    ride_count: int = 0
    delivery_count: int = 0


class EarningsSummary(BaseModel):
    """Сводка заработка за период."""

    driver_id: UUID
    period: str
    period_start: datetime
    period_end: datetime
    gross_earnings: Money = Decimal("0.00")
    total_commission: Money = Decimal("0.00")
    net_earnings: Money = Decimal("0.00")
    tip_earnings: Money = Decimal("0.00")
    bonus_earnings: Money = Decimal("0.00")
    surge_earnings: Money = Decimal("0.00")
    wait_time_earnings: Money = Decimal("0.00")
    delivery_earnings: Money = Decimal("0.00")
    ride_count: int = 0
    delivery_count: int = 0
    online_hours: float = 0.0
    earnings_per_hour: Money = Decimal("0.00")
    currency: str = "USD"
    breakdown: list[EarningBreakdown] = Field(default_factory=list)


class DailyEarning(BaseModel):
    """Заработок за один локальный календарный день."""

    date: str
    gross_amount: Money = Decimal("0.00")
    net_amount: Money = Decimal("0.00")
    commission: Money = Decimal("0.00")
    tips: Money = Decimal("0.00")
    ride_count: int = 0
    online_hours: float = 0.0


class DailyEarningsResponse(BaseModel):
    daily: list[DailyEarning] = Field(default_factory=list)
    period: str


class EarningsHistoryResponse(BaseModel):
    earnings: list[Earning] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20


class PayoutHistoryResponse(BaseModel):
    payouts: list[Payout] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20


class BalanceResponse(BaseModel):
    unpaid_balance: Money
    currency: str = "USD"


class BankAccountListResponse(BaseModel):
    accounts: list[BankAccount] = Field(default_factory=list)
    count: int = 0


class EarningGoalStatus(BaseModel):
    """Прогресс по цели."""

    goal: EarningGoal
    current_amount: Money
    progress_percent: float
    remaining: Money
    on_track: bool


class EarningGoalListResponse(BaseModel):
    goals: list[EarningGoalStatus] = Field(default_factory=list)


# =============================================================================
# ЗАПРОСЫ
# =============================================================================

class AddBankAccountRequest(BaseModel):
    """Тело POST /earnings/bank-accounts."""

    bank_name: str = Field(..., min_length=1, max_length=255)
    account_holder: str = Field(..., min_length=1, max_length=255)
    account_number: str = Field(..., min_length=1, max_length=64)
    routing_number: Optional[str] = None
    iban: Optional[str] = None
    swift_code: Optional[str] = None
    currency: str = ""
    is_primary: bool = False


class RequestPayoutRequest(BaseModel):
    """Тело POST /earnings/payouts."""

    method: PayoutMethod
    bank_account_id: Optional[UUID] = None


class SetEarningGoalRequest(BaseModel):
    """Тело POST /earnings/goals. Правила проверяет сервис."""

    target_amount: Decimal
    period: str


class AdminBonusRequest(BaseModel):
    """Тело POST /admin/earnings/bonus."""

    driver_id: UUID
    amount: Decimal
    description: str = Field("", max_length=500)


class UpdatePayoutStatusRequest(BaseModel):
    """Тело PATCH /admin/earnings/payouts/{id}/status."""

    status: PayoutStatus
    failure_reason: Optional[str] = Field(None, max_length=500)
