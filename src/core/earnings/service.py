# src/core/earnings/service.py
"""
Сервис заработка водителей.
Начисления, сводки, выплаты, банковские счета и цели.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal
from fractions import Fraction
from typing import Optional
from uuid import UUID, uuid4

from asyncpg import Connection

from src.common.constants import EarningType, GoalPeriod, PayoutMethod, PayoutStatus, TypeMsg
from src.common.errors import BadRequestError, ConflictError, ForbiddenError, InternalError, NotFoundError
from src.common.logger import log_error, log_info
from src.common.money import ZERO, format_money, split_commission, to_money
from src.common.references import generate_payout_reference
from src.core.earnings.models import (
    AddBankAccountRequest,
    BankAccount,
    BankAccountListResponse,
    DailyEarningsResponse,
    Earning,
    EarningGoal,
    EarningGoalStatus,
    EarningsHistoryResponse,
    EarningsSummary,
    Payout,
    PayoutHistoryResponse,
    RequestPayoutRequest,
    SetEarningGoalRequest,
)
from src.core.earnings.repository import (
    BankAccountRepository,
    EarningGoalRepository,
    EarningRepository,
    PayoutRepository,
)
from src.core.earnings.state_machine import PayoutStateMachine
from src.core.periods import PeriodResolver
from src.infra.database import RETRYABLE_TRANSACTION_ERRORS, DatabaseManager
from src.infra.event_bus import DomainEvent, EventBus, EventTypes
from src.shared.models.common import PaginationParams


class EarningsService:
    """
    Сервис заработка.
    Единственный, кто пишет в ledger начислений и выплат.
    """

    def __init__(
        self,
        db: DatabaseManager,
        event_bus: EventBus,
        periods: Optional[PeriodResolver] = None,
    ) -> None:
        """
        Инициализация сервиса.

        Args:
            db: Менеджер базы данных
            event_bus: Шина событий (уведомления best-effort)
            periods: Резолвер периодов с часами
        """
        from src.config import settings

        self._db = db
        self._event_bus = event_bus
        self._periods = periods or PeriodResolver(default_timezone=settings.domain.TIMEZONE)

        self._earnings = EarningRepository(db)
        self._payouts = PayoutRepository(db)
        self._bank_accounts = BankAccountRepository(db)
        self._goals = EarningGoalRepository(db)

        self.currency = settings.domain.DEFAULT_CURRENCY
        self.commission_rate = settings.earnings.DEFAULT_COMMISSION_RATE
        self.min_payout = to_money(settings.earnings.MIN_PAYOUT_AMOUNT)
        self.payout_period_days = settings.earnings.PAYOUT_PERIOD_DAYS
        self.history_page_size = settings.earnings.HISTORY_PAGE_SIZE
        self.history_max_page_size = settings.earnings.HISTORY_MAX_PAGE_SIZE
        self.payouts_max_page_size = settings.earnings.PAYOUTS_MAX_PAGE_SIZE
        self.serializable_retries = settings.database.DB_SERIALIZABLE_RETRIES

        self._background_tasks: set[asyncio.Task] = set()

    # =========================================================================
    # НАЧИСЛЕНИЯ
    # =========================================================================

    async def record_ride_earning(
        self,
        driver_id: UUID,
        ride_id: UUID,
        gross_amount: Decimal,
        commission_rate: Optional[Decimal] = None,
    ) -> Earning:
        """Начисление за поездку с комиссией платформы."""
        return await self._record(
            driver_id,
            EarningType.RIDE_FARE,
            gross_amount,
            self.commission_rate if commission_rate is None else commission_rate,
            ride_id=ride_id,
            description="Ride fare",
        )

    async def record_tip(self, driver_id: UUID, ride_id: UUID, amount: Decimal) -> Earning:
        """Чаевые. Комиссия не удерживается."""
        if to_money(amount) <= ZERO:
            raise BadRequestError("tip amount must be positive")
        return await self._record(
            driver_id, EarningType.TIP, amount, Decimal("0"), ride_id=ride_id, description="Tip from rider"
        )

    async def record_bonus(self, driver_id: UUID, amount: Decimal, description: str = "") -> Earning:
        return await self._record(
            driver_id, EarningType.BONUS, amount, Decimal("0"), description=description or "Bonus"
        )

    async def record_surge(self, driver_id: UUID, ride_id: UUID, amount: Decimal) -> Earning:
        return await self._record(
            driver_id, EarningType.SURGE, amount, Decimal("0"), ride_id=ride_id, description="Surge pricing bonus"
        )

    async def record_delivery_earning(
        self,
        driver_id: UUID,
        delivery_id: UUID,
        gross_amount: Decimal,
        commission_rate: Optional[Decimal] = None,
    ) -> Earning:
        return await self._record(
            driver_id,
            EarningType.DELIVERY,
            gross_amount,
            self.commission_rate if commission_rate is None else commission_rate,
            delivery_id=delivery_id,
            description="Delivery earning",
        )

    async def award_bonus(self, driver_id: UUID, amount: Decimal, description: str = "") -> Earning:
        """
        Бонус от администратора: начисление и уведомление водителю.

        Raises:
            BadRequestError: сумма не положительна
        """
        if to_money(amount) <= ZERO:
            raise BadRequestError("bonus amount must be positive")

        earning = await self.record_bonus(driver_id, amount, description)

        await self._publish(
            EventTypes.EARNING_BONUS_AWARDED,
            {
                "driver_id": str(driver_id),
                "earning_id": str(earning.id),
                "amount": format_money(earning.net_amount),
                "currency": earning.currency,
                "description": earning.description,
            },
        )
        return earning

    async def _record(
        self,
        driver_id: UUID,
        earning_type: EarningType,
        gross_amount: Decimal,
        rate: Decimal,
        *,
        ride_id: Optional[UUID] = None,
        delivery_id: Optional[UUID] = None,
        description: str = "",
    ) -> Earning:
        gross = to_money(gross_amount)
        if gross < ZERO:
            raise BadRequestError("amount must not be negative")
        rate = Decimal(str(rate))
        if rate < 0 or rate > 1:
            raise BadRequestError("commission rate must be between 0 and 1")

        commission, net = split_commission(gross, rate)
        earning = Earning(
            id=uuid4(),
            driver_id=driver_id,
            ride_id=ride_id,
            delivery_id=delivery_id,
            type=earning_type,
            gross_amount=gross,
            commission=commission,
            net_amount=net,
            currency=self.currency,
            description=description,
            created_at=self._periods.now(),
        )

        await self._earnings.append(earning)
        self._schedule_goal_progress(driver_id, net)
        return earning

    # =========================================================================
    # ЦЕЛИ: ФОНОВОЕ ОБНОВЛЕНИЕ ПРОГРЕССА
    # =========================================================================

    def _schedule_goal_progress(self, driver_id: UUID, delta: Decimal) -> None:
        """Запускает обновление целей после записи начисления, не дожидаясь его."""
        if delta <= ZERO:
            return
        task = asyncio.create_task(self._advance_goals(driver_id, delta))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _advance_goals(self, driver_id: UUID, delta: Decimal) -> None:
        try:
            goals = await self._goals.list_active(driver_id)
            for goal in goals:
                await self._goals.bump_progress(goal.id, delta)
        except Exception as e:
            await log_error(f"Не удалось обновить цели водителя {driver_id}: {e}")

    async def drain_background_tasks(self) -> None:
        """Дожидается фоновых обновлений целей (остановка сервиса, тесты)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # =========================================================================
    # ОТЧЁТЫ
    # =========================================================================

    async def get_summary(
        self,
        driver_id: UUID,
        period: str = "today",
        tz_name: Optional[str] = None,
    ) -> EarningsSummary:
        """
        Сводка за период.

        Raises:
            BadRequestError: неизвестный период или зона
        """
        time_range = self._periods.resolve(period, tz_name)

        totals = await self._earnings.summarize(driver_id, time_range.start, time_range.end)
        breakdown = await self._earnings.breakdown(driver_id, time_range.start, time_range.end)

        # Онлайн-часы сервис не отслеживает, поэтому earnings_per_hour = 0
        return EarningsSummary(
            driver_id=driver_id,
            period=time_range.label,
            period_start=time_range.start,
            period_end=time_range.end,
            gross_earnings=totals.gross,
            total_commission=totals.commission,
            net_earnings=totals.net,
            tip_earnings=totals.tips,
            bonus_earnings=totals.bonuses,
            surge_earnings=totals.surge,
            wait_time_earnings=totals.wait_time,
            delivery_earnings=totals.delivery,
            ride_count=totals.ride_count,
            delivery_count=totals.delivery_count,
            online_hours=0.0,
            earnings_per_hour=ZERO,
            currency=self.currency,
            breakdown=breakdown,
        )

    async def get_daily(
        self,
        driver_id: UUID,
        period: str = "this_week",
        tz_name: Optional[str] = None,
    ) -> DailyEarningsResponse:
        """Заработок по локальным календарным дням."""
        time_range = self._periods.resolve(period, tz_name)
        zone = self._periods.zone(tz_name)

        daily = await self._earnings.daily_rollup(
            driver_id,
            time_range.start,
            time_range.end,
            getattr(zone, "key", "UTC"),
        )
        return DailyEarningsResponse(daily=daily, period=time_range.label)

    async def get_history(
        self,
        driver_id: UUID,
        period: str = "this_month",
        page: int = 1,
        page_size: int = 20,
        tz_name: Optional[str] = None,
    ) -> EarningsHistoryResponse:
        """Страница начислений за период."""
        pagination = PaginationParams.clamp(
            page, page_size, default=self.history_page_size, maximum=self.history_max_page_size
        )
        time_range = self._periods.resolve(period, tz_name)

        earnings, total = await self._earnings.list_for_period(
            driver_id, time_range.start, time_range.end, pagination.limit, pagination.offset
        )
        return EarningsHistoryResponse(
            earnings=earnings,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
        )

    async def get_unpaid_balance(self, driver_id: UUID) -> Decimal:
        return await self._earnings.unpaid_total(driver_id)

    # =========================================================================
    # ВЫПЛАТЫ
    # =========================================================================

    async def request_payout(self, driver_id: UUID, request: RequestPayoutRequest) -> Payout:
        """
        Выплачивает водителю все невыплаченные начисления.

        Вставка выплаты и пометка начислений идут в одной
        SERIALIZABLE-транзакции. Сумма выплаты берётся из реально
        помеченных строк, предварительный баланс только для проверки минимума.

        Raises:
            BadRequestError: баланс ниже минимума или нет банковского счёта
            ConflictError: начисления уже забрала параллельная выплата
            InternalError: транзакция не прошла после всех повторов
        """
        unpaid_total = await self._earnings.unpaid_total(driver_id)
        if unpaid_total < self.min_payout:
            raise BadRequestError(
                f"minimum payout amount is {format_money(self.min_payout)}, "
                f"current balance: {format_money(unpaid_total)}"
            )

        bank_account_id: Optional[UUID] = None
        if request.method == PayoutMethod.BANK_TRANSFER:
            account = await self._resolve_payout_account(driver_id, request.bank_account_id)
            bank_account_id = account.id

        now = self._periods.now()
        payout = Payout(
            id=uuid4(),
            driver_id=driver_id,
            amount=unpaid_total,
            currency=self.currency,
            method=request.method,
            status=PayoutStatus.PENDING,
            bank_account_id=bank_account_id,
            reference=generate_payout_reference(),
            earning_count=0,
            period_start=now - timedelta(days=self.payout_period_days),
            period_end=now,
            created_at=now,
            updated_at=now,
        )

        async def issue(conn: Connection) -> Payout:
            await self._payouts.create(payout, conn=conn)
            count, total = await self._earnings.mark_paid(driver_id, payout.id, now, conn=conn)
            if count == 0:
                raise ConflictError("no unpaid earnings to pay out")
            updated = await self._payouts.set_totals(payout.id, total, count, conn=conn)
            return updated or payout.model_copy(update={"amount": total, "earning_count": count})

        try:
            issued = await self._db.run_in_transaction(
                issue, isolation="serializable", attempts=self.serializable_retries
            )
        except RETRYABLE_TRANSACTION_ERRORS:
            raise InternalError("payout could not be completed, please retry")

        await log_info(
            f"Выплата {issued.reference} водителю {driver_id}: {issued.amount} ({issued.earning_count} начислений)",
            type_msg=TypeMsg.INFO,
        )
        await self._publish(
            EventTypes.PAYOUT_REQUESTED,
            {
                "payout_id": str(issued.id),
                "driver_id": str(driver_id),
                "amount": format_money(issued.amount),
                "currency": issued.currency,
                "method": issued.method.value,
                "reference": issued.reference,
            },
        )
        return issued

    async def _resolve_payout_account(self, driver_id: UUID, account_id: Optional[UUID]) -> BankAccount:
        if account_id is not None:
            account = await self._bank_accounts.get_by_id(account_id)
            if account is not None and account.driver_id != driver_id:
                account = None
        else:
            account = await self._bank_accounts.get_primary(driver_id)

        if account is None:
            raise BadRequestError("no bank account found for payout")
        return account

    async def get_payout_history(self, driver_id: UUID, page: int = 1, page_size: int = 20) -> PayoutHistoryResponse:
        pagination = PaginationParams.clamp(
            page, page_size, default=self.history_page_size, maximum=self.payouts_max_page_size
        )
        payouts, total = await self._payouts.list_by_driver(driver_id, pagination.limit, pagination.offset)
        return PayoutHistoryResponse(
            payouts=payouts,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
        )

    async def update_payout_status(
        self,
        payout_id: UUID,
        new_status: PayoutStatus,
        failure_reason: Optional[str] = None,
    ) -> Payout:
        """
        Переводит выплату по машине состояний (действие администратора).

        Raises:
            NotFoundError: выплаты нет
            BadRequestError: переход недопустим
            ConflictError: статус сменился параллельно
        """
        payout = await self._payouts.get_by_id(payout_id)
        if payout is None:
            raise NotFoundError("payout")

        if not PayoutStateMachine.can_transition(payout.status.value, new_status.value):
            raise BadRequestError(
                f"cannot change payout status from {payout.status.value} to {new_status.value}"
            )

        reason = None
        if new_status == PayoutStatus.FAILED:
            reason = failure_reason or "unspecified"
        processed_at = self._periods.now() if PayoutStateMachine.is_terminal(new_status.value) else None

        updated = await self._payouts.update_status(payout_id, payout.status, new_status, reason, processed_at)
        if updated is None:
            raise ConflictError("payout status was changed concurrently")

        await log_info(
            f"Выплата {payout.reference}: {payout.status.value} -> {new_status.value}",
            type_msg=TypeMsg.INFO,
        )
        await self._publish(
            EventTypes.PAYOUT_STATUS_CHANGED,
            {
                "payout_id": str(payout_id),
                "driver_id": str(updated.driver_id),
                "status": new_status.value,
                "failure_reason": reason,
            },
        )
        return updated

    # =========================================================================
    # БАНКОВСКИЕ СЧЕТА
    # =========================================================================

    async def add_bank_account(self, driver_id: UUID, request: AddBankAccountRequest) -> BankAccount:
        now = self._periods.now()
        account = BankAccount(
            id=uuid4(),
            driver_id=driver_id,
            bank_name=request.bank_name,
            account_holder=request.account_holder,
            account_number=request.account_number,
            routing_number=request.routing_number,
            iban=request.iban,
            swift_code=request.swift_code,
            currency=request.currency or self.currency,
            is_primary=request.is_primary,
            is_verified=False,
            created_at=now,
            updated_at=now,
        )
        return await self._bank_accounts.add(account)

    async def list_bank_accounts(self, driver_id: UUID) -> BankAccountListResponse:
        accounts = await self._bank_accounts.list_by_driver(driver_id)
        return BankAccountListResponse(accounts=accounts, count=len(accounts))

    async def delete_bank_account(self, driver_id: UUID, account_id: UUID) -> None:
        """
        Raises:
            NotFoundError: счёта нет
            ForbiddenError: счёт принадлежит другому водителю
        """
        account = await self._bank_accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError("bank account")
        if account.driver_id != driver_id:
            raise ForbiddenError("bank account belongs to another driver")

        if not await self._bank_accounts.delete(account_id, driver_id):
            raise NotFoundError("bank account")

    # =========================================================================
    # ЦЕЛИ
    # =========================================================================

    async def set_earning_goal(self, driver_id: UUID, request: SetEarningGoalRequest) -> EarningGoal:
        """
        Raises:
            BadRequestError: сумма не положительна или период не daily/weekly/monthly
        """
        target = to_money(request.target_amount)
        if target <= ZERO:
            raise BadRequestError("target amount must be positive")
        try:
            period = GoalPeriod(request.period)
        except ValueError:
            raise BadRequestError("period must be daily, weekly, or monthly")

        now = self._periods.now()
        goal = EarningGoal(
            id=uuid4(),
            driver_id=driver_id,
            target_amount=target,
            period=period,
            current_amount=ZERO,
            currency=self.currency,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        return await self._goals.upsert(goal)

    async def get_earning_goals(self, driver_id: UUID, tz_name: Optional[str] = None) -> list[EarningGoalStatus]:
        """Активные цели с прогрессом и признаком on_track."""
        goals = await self._goals.list_active(driver_id)
        return [
            self.goal_status(goal, self._periods.progress_fraction(goal.period.value, tz_name))
            for goal in goals
        ]

    @staticmethod
    def goal_status(goal: EarningGoal, expected_fraction: Fraction) -> EarningGoalStatus:
        """
        progress = min(100, 100 * current / target), remaining = max(0, target - current),
        on_track = current >= target * expected_fraction (точно, в рациональных числах).
        """
        current = goal.current_amount
        target = goal.target_amount

        progress = min(Decimal("100"), current * 100 / target) if target > 0 else Decimal("0")
        remaining = max(ZERO, target - current)
        on_track = Fraction(current) >= Fraction(target) * expected_fraction

        return EarningGoalStatus(
            goal=goal,
            current_amount=current,
            progress_percent=round(float(progress), 2),
            remaining=to_money(remaining),
            on_track=on_track,
        )

    # =========================================================================
    # УВЕДОМЛЕНИЯ
    # =========================================================================

    async def _publish(self, event_type: str, payload: dict) -> None:
        """Публикация best-effort: шина сама логирует и не бросает."""
        await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
