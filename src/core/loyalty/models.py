# src/core/loyalty/models.py
"""
Модели баллов лояльности.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from src.common.constants import LoyaltyTier, PointsSource, PointsTransactionType


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RiderLoyalty(BaseModel):
    """Счёт баллов пассажира."""

    rider_id: UUID
    tier: LoyaltyTier = LoyaltyTier.BRONZE
    total_points: int = 0
    available_points: int = Field(0, ge=0)
    lifetime_points: int = 0
    tier_points: int = 0
    joined_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    class Config:
        from_attributes = True


class PointsTransaction(BaseModel):
    """Запись журнала баллов. points со знаком: списания отрицательные."""

    id: UUID = Field(default_factory=uuid4)
    rider_id: UUID
    transaction_type: PointsTransactionType
    points: int
    balance_after: int = Field(..., ge=0)
    source: str
    source_id: Optional[UUID] = None
    description: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utc_now)

    class Config:
        from_attributes = True


class PointsHistoryResponse(BaseModel):
    transactions: list[PointsTransaction] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20


class UsePointsRequest(BaseModel):
    """Тело POST /loyalty/points/use."""

    ride_id: UUID
    points: int


class AwardPointsRequest(BaseModel):
    """Тело POST /admin/loyalty/points."""

    rider_id: UUID
    points: int
    source: PointsSource = PointsSource.PROMOTION
    source_id: Optional[UUID] = None
    description: Optional[str] = Field(None, max_length=500)
