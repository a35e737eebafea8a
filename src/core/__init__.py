# src/core/__init__.py
"""
Доменный слой (Core Domain).
Начисления и выплаты водителей, подарочные карты, баллы лояльности
и проекции истории поездок.
"""

from src.core.earnings import EarningsService
from src.core.giftcards import GiftCardService
from src.core.loyalty import LoyaltyService
from src.core.periods import PeriodResolver
from src.core.ridehistory import RideHistoryService

__all__ = [
    "EarningsService",
    "GiftCardService",
    "LoyaltyService",
    "PeriodResolver",
    "RideHistoryService",
]
