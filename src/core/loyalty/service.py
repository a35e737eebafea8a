# src/core/loyalty/service.py
"""
Сервис баллов лояльности: счёт пассажира и журнал начислений/списаний.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional
from uuid import UUID, uuid4

from src.common.constants import (
    TIER_MULTIPLIERS,
    LoyaltyTier,
    PointsSource,
    PointsTransactionType,
    TypeMsg,
)
from src.common.errors import BadRequestError
from src.common.logger import log_info
from src.core.loyalty.models import PointsHistoryResponse, PointsTransaction, RiderLoyalty
from src.core.loyalty.repository import LoyaltyRepository
from src.core.periods import PeriodResolver
from src.infra.database import DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes
from src.shared.models.common import PaginationParams


class LoyaltyService:
    """Баллы лояльности пассажиров."""

    def __init__(
        self,
        db: DatabaseManager,
        event_bus: EventBus,
        periods: Optional[PeriodResolver] = None,
    ) -> None:
        from src.config import settings

        self._db = db
        self._repo = LoyaltyRepository(db)
        self._event_bus = event_bus
        self._periods = periods or PeriodResolver(default_timezone=settings.domain.TIMEZONE)

        self.signup_bonus = settings.loyalty.SIGNUP_BONUS_POINTS
        self.points_validity_days = settings.loyalty.POINTS_VALIDITY_DAYS

    async def get_or_create_account(self, rider_id: UUID) -> RiderLoyalty:
        """
        Возвращает счёт пассажира. Новый счёт открывается на bronze
        с приветственным бонусом, счёт и бонус пишутся одной транзакцией.
        """
        account = await self._repo.get_account(rider_id)
        if account is not None:
            return account

        now = self._periods.now()
        async with self._db.transaction() as conn:
            created = await self._repo.create_account(
                RiderLoyalty(rider_id=rider_id, tier=LoyaltyTier.BRONZE, joined_at=now, updated_at=now),
                conn=conn,
            )
            if created and self.signup_bonus > 0:
                balance = await self._repo.credit(rider_id, self.signup_bonus, conn=conn)
                await self._repo.insert_transaction(
                    PointsTransaction(
                        id=uuid4(),
                        rider_id=rider_id,
                        transaction_type=PointsTransactionType.BONUS,
                        points=self.signup_bonus,
                        balance_after=balance,
                        source=PointsSource.SIGNUP.value,
                        description="Welcome bonus!",
                        expires_at=now + timedelta(days=self.points_validity_days),
                        created_at=now,
                    ),
                    conn=conn,
                )
            account = await self._repo.get_account(rider_id, conn=conn)

        if created:
            await log_info(f"Открыт счёт лояльности пассажира {rider_id}", type_msg=TypeMsg.INFO)
        return account

    async def get_status(self, rider_id: UUID) -> RiderLoyalty:
        return await self.get_or_create_account(rider_id)

    async def earn_points(
        self,
        rider_id: UUID,
        points: int,
        source: PointsSource,
        source_id: Optional[UUID] = None,
        description: Optional[str] = None,
    ) -> PointsTransaction:
        """
        Начисляет баллы с множителем уровня. Баллы сгорают через год.

        Raises:
            BadRequestError: points не положительно
        """
        if points <= 0:
            raise BadRequestError("points must be positive")

        account = await self.get_or_create_account(rider_id)
        multiplier = TIER_MULTIPLIERS.get(account.tier, TIER_MULTIPLIERS[LoyaltyTier.BRONZE])
        earned = int(points * multiplier)

        now = self._periods.now()
        async with self._db.transaction() as conn:
            balance = await self._repo.credit(rider_id, earned, conn=conn)
            txn = await self._repo.insert_transaction(
                PointsTransaction(
                    id=uuid4(),
                    rider_id=rider_id,
                    transaction_type=PointsTransactionType.EARN,
                    points=earned,
                    balance_after=balance,
                    source=source.value,
                    source_id=source_id,
                    description=description or None,
                    expires_at=now + timedelta(days=self.points_validity_days),
                    created_at=now,
                ),
                conn=conn,
            )

        await log_info(
            f"Пассажиру {rider_id} начислено {earned} баллов ({source.value}, x{multiplier})",
            type_msg=TypeMsg.INFO,
        )
        await self._event_bus.publish(
            DomainEvent(
                event_type=EventTypes.LOYALTY_POINTS_EARNED,
                payload={
                    "rider_id": str(rider_id),
                    "points": earned,
                    "balance": balance,
                    "source": source.value,
                },
            )
        )
        return txn

    async def use_points(self, rider_id: UUID, ride_id: UUID, points: int) -> PointsTransaction:
        """
        Списывает баллы в оплату поездки.

        Raises:
            BadRequestError: points не положительно или баллов не хватает
        """
        if points <= 0:
            raise BadRequestError("points must be positive")

        await self.get_or_create_account(rider_id)

        now = self._periods.now()
        async with self._db.transaction() as conn:
            balance = await self._repo.debit(rider_id, points, conn=conn)
            if balance is None:
                raise BadRequestError("insufficient points")
            txn = await self._repo.insert_transaction(
                PointsTransaction(
                    id=uuid4(),
                    rider_id=rider_id,
                    transaction_type=PointsTransactionType.REDEEM,
                    points=-points,
                    balance_after=balance,
                    source=PointsSource.RIDE.value,
                    source_id=ride_id,
                    description="Points used for ride",
                    created_at=now,
                ),
                conn=conn,
            )

        await log_info(f"Пассажир {rider_id} списал {points} баллов за поездку {ride_id}", type_msg=TypeMsg.INFO)
        return txn

    async def get_history(self, rider_id: UUID, page: int = 1, page_size: int = 20) -> PointsHistoryResponse:
        pagination = PaginationParams.clamp(page, page_size, default=20, maximum=100)
        transactions, total = await self._repo.list_transactions(rider_id, pagination.limit, pagination.offset)
        return PointsHistoryResponse(
            transactions=transactions,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
        )
