# src/core/ridehistory/__init__.py
"""
Модуль истории поездок: чеки, статистика, частые маршруты.
"""

from src.core.ridehistory.models import FrequentRoute, Receipt, Ride, RideStats
from src.core.ridehistory.repository import RideHistoryRepository
from src.core.ridehistory.service import RideHistoryService

__all__ = [
    "FrequentRoute",
    "Receipt",
    "Ride",
    "RideStats",
    "RideHistoryRepository",
    "RideHistoryService",
]
