# src/core/loyalty/__init__.py
"""
Модуль баллов лояльности.
"""

from src.core.loyalty.models import PointsTransaction, RiderLoyalty
from src.core.loyalty.repository import LoyaltyRepository
from src.core.loyalty.service import LoyaltyService

__all__ = [
    "PointsTransaction",
    "RiderLoyalty",
    "LoyaltyRepository",
    "LoyaltyService",
]
