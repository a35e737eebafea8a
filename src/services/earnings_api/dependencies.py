# src/services/earnings_api/dependencies.py
"""
Dependency Injection для API начислений и выплат.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from src.core.earnings import EarningsService
    from src.core.giftcards import GiftCardService
    from src.core.loyalty import LoyaltyService
    from src.core.periods import PeriodResolver
    from src.core.ridehistory import RideHistoryService
    from src.infra.database import DatabaseManager
    from src.infra.event_bus import EventBus


# Синглтоны
_earnings_service: "EarningsService | None" = None
_gift_card_service: "GiftCardService | None" = None
_loyalty_service: "LoyaltyService | None" = None
_ride_history_service: "RideHistoryService | None" = None


async def init_dependencies(
    db: "DatabaseManager",
    event_bus: "EventBus",
    periods: Optional["PeriodResolver"] = None,
) -> None:
    """Инициализировать сервисы при старте приложения. Один резолвер периодов на всех."""
    global _earnings_service, _gift_card_service, _loyalty_service, _ride_history_service

    from src.config import settings
    from src.core.earnings import EarningsService
    from src.core.giftcards import GiftCardService
    from src.core.loyalty import LoyaltyService
    from src.core.periods import PeriodResolver
    from src.core.ridehistory import RideHistoryService

    periods = periods or PeriodResolver(default_timezone=settings.domain.TIMEZONE)

    _earnings_service = EarningsService(db, event_bus, periods)
    _gift_card_service = GiftCardService(db, event_bus, periods)
    _loyalty_service = LoyaltyService(db, event_bus, periods)
    _ride_history_service = RideHistoryService(db, periods)


def get_earnings_service() -> "EarningsService":
    if _earnings_service is None:
        raise RuntimeError("EarningsService не инициализирован. Вызовите init_dependencies()")
    return _earnings_service


def get_gift_card_service() -> "GiftCardService":
    if _gift_card_service is None:
        raise RuntimeError("GiftCardService не инициализирован. Вызовите init_dependencies()")
    return _gift_card_service


def get_loyalty_service() -> "LoyaltyService":
    if _loyalty_service is None:
        raise RuntimeError("LoyaltyService не инициализирован. Вызовите init_dependencies()")
    return _loyalty_service


def get_ride_history_service() -> "RideHistoryService":
    if _ride_history_service is None:
        raise RuntimeError("RideHistoryService не инициализирован. Вызовите init_dependencies()")
    return _ride_history_service


async def cleanup_dependencies() -> None:
    """Дождаться фоновых обновлений целей и сбросить синглтоны."""
    global _earnings_service, _gift_card_service, _loyalty_service, _ride_history_service
    if _earnings_service is not None:
        await _earnings_service.drain_background_tasks()
    _earnings_service = None
    _gift_card_service = None
    _loyalty_service = None
    _ride_history_service = None
