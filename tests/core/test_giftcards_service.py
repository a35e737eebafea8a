# tests/core/test_giftcards_service.py
"""
Тесты для сервиса подарочных карт.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4
from unittest.mock import AsyncMock

import pytest

from src.common.constants import GiftCardStatus, GiftCardType
from src.common.errors import BadRequestError, ConflictError, NotFoundError
from src.core.giftcards.models import (
    CreateBulkRequest,
    GiftCard,
    PurchaseGiftCardRequest,
    RedeemGiftCardRequest,
)
from src.core.giftcards.service import GiftCardService
from src.core.periods import PeriodResolver
from src.infra.event_bus import EventTypes

NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(mock_db: AsyncMock, mock_event_bus: AsyncMock, periods: PeriodResolver) -> GiftCardService:
    svc = GiftCardService(mock_db, mock_event_bus, periods)
    svc.currency = "USD"
    svc.min_amount = Decimal("10.00")
    svc.max_amount = Decimal("500.00")
    svc.validity_days = 365
    svc.bulk_max_count = 1000
    svc.deduct_attempts = 3
    svc._repo = AsyncMock()
    return svc


def _card(**overrides) -> GiftCard:
    data = dict(
        code="ABCD-EFGH-JKLM-NPQR",
        card_type=GiftCardType.PURCHASED,
        status=GiftCardStatus.ACTIVE,
        original_amount=Decimal("50.00"),
        remaining_amount=Decimal("50.00"),
        expires_at=NOW + timedelta(days=30),
    )
    data.update(overrides)
    return GiftCard(**data)


class TestPurchase:
    """Покупка карты."""

    @pytest.mark.parametrize("amount", ["9.99", "500.01"])
    @pytest.mark.asyncio
    async def test_amount_out_of_range(self, service: GiftCardService, rider_id: UUID, amount: str) -> None:
        with pytest.raises(BadRequestError, match="amount must be between 10.00 and 500.00"):
            await service.purchase(rider_id, PurchaseGiftCardRequest(amount=Decimal(amount)))

    @pytest.mark.asyncio
    async def test_purchase(self, service: GiftCardService, mock_event_bus: AsyncMock, rider_id: UUID) -> None:
        service._repo.create.side_effect = lambda card: card

        card = await service.purchase(
            rider_id, PurchaseGiftCardRequest(amount=Decimal("25"), recipient_email="friend@example.com")
        )

        assert re.fullmatch(r"([A-Z2-9]{4}-){3}[A-Z2-9]{4}", card.code)
        assert card.status == GiftCardStatus.ACTIVE
        assert card.remaining_amount == card.original_amount == Decimal("25.00")
        assert card.expires_at == NOW + timedelta(days=365)
        assert card.purchaser_id == rider_id
        assert mock_event_bus.publish.call_args[0][0].event_type == EventTypes.GIFT_CARD_PURCHASED

    @pytest.mark.asyncio
    async def test_code_collision_retried(self, service: GiftCardService, rider_id: UUID) -> None:
        created = _card()
        service._repo.create.side_effect = [ConflictError("gift card code already exists"), created]

        card = await service.purchase(rider_id, PurchaseGiftCardRequest(amount=Decimal("50")))

        assert card is created
        assert service._repo.create.await_count == 2


class TestRedeem:
    """Активация карты."""

    @pytest.mark.asyncio
    async def test_not_found(self, service: GiftCardService, rider_id: UUID) -> None:
        service._repo.get_by_code.return_value = None

        with pytest.raises(NotFoundError):
            await service.redeem(rider_id, RedeemGiftCardRequest(code="nope"))

    @pytest.mark.asyncio
    async def test_code_normalized(self, service: GiftCardService, rider_id: UUID) -> None:
        service._repo.get_by_code.return_value = None

        with pytest.raises(NotFoundError):
            await service.redeem(rider_id, RedeemGiftCardRequest(code=" abcd-efgh-jklm-npqr "))

        service._repo.get_by_code.assert_awaited_once_with("ABCD-EFGH-JKLM-NPQR")

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"status": GiftCardStatus.DISABLED}, "gift card is not active"),
            ({"remaining_amount": Decimal("0")}, "gift card has no remaining balance"),
            ({"expires_at": NOW - timedelta(days=1)}, "gift card has expired"),
            ({"recipient_id": uuid4()}, "gift card already redeemed by another user"),
        ],
    )
    @pytest.mark.asyncio
    async def test_rejected(self, service: GiftCardService, rider_id: UUID, overrides: dict, message: str) -> None:
        service._repo.get_by_code.return_value = _card(**overrides)

        with pytest.raises(BadRequestError, match=message):
            await service.redeem(rider_id, RedeemGiftCardRequest(code="ABCD-EFGH-JKLM-NPQR"))

    @pytest.mark.asyncio
    async def test_assigns_recipient(self, service: GiftCardService, mock_event_bus: AsyncMock, rider_id: UUID) -> None:
        service._repo.get_by_code.return_value = _card()
        service._repo.assign_recipient.return_value = True

        card = await service.redeem(rider_id, RedeemGiftCardRequest(code="ABCD-EFGH-JKLM-NPQR"))

        assert card.recipient_id == rider_id
        assert card.redeemed_at == NOW
        assert mock_event_bus.publish.call_args[0][0].event_type == EventTypes.GIFT_CARD_REDEEMED

    @pytest.mark.asyncio
    async def test_redeem_again_by_owner(self, service: GiftCardService, mock_event_bus: AsyncMock, rider_id: UUID) -> None:
        """Повторная активация своей карты ничего не меняет."""
        service._repo.get_by_code.return_value = _card(recipient_id=rider_id)

        card = await service.redeem(rider_id, RedeemGiftCardRequest(code="ABCD-EFGH-JKLM-NPQR"))

        assert card.recipient_id == rider_id
        service._repo.assign_recipient.assert_not_called()
        mock_event_bus.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_lost_race(self, service: GiftCardService, rider_id: UUID) -> None:
        card = _card()
        service._repo.get_by_code.return_value = card
        service._repo.assign_recipient.return_value = False
        service._repo.get_by_id.return_value = _card(id=card.id, recipient_id=uuid4())

        with pytest.raises(BadRequestError, match="another user"):
            await service.redeem(rider_id, RedeemGiftCardRequest(code=card.code))


class TestUseBalance:
    """Списание за поездку."""

    @pytest.mark.asyncio
    async def test_amount_must_be_positive(self, service: GiftCardService, rider_id: UUID) -> None:
        with pytest.raises(BadRequestError, match="amount must be positive"):
            await service.use_balance(rider_id, uuid4(), Decimal("0"))

    @pytest.mark.asyncio
    async def test_oldest_first_partial(self, service: GiftCardService, mock_conn: AsyncMock, rider_id: UUID) -> None:
        """Две карты 5 + 10, долг 12: первая обнуляется, со второй 7."""
        first = _card(remaining_amount=Decimal("5.00"))
        second = _card(code="WXYZ-WXYZ-WXYZ-WXYZ", remaining_amount=Decimal("10.00"))
        service._repo.list_active_by_recipient.return_value = [first, second]
        service._repo.deduct.side_effect = [Decimal("0.00"), Decimal("3.00")]

        deducted = await service.use_balance(rider_id, uuid4(), Decimal("12.00"))

        assert deducted == Decimal("12.00")
        calls = service._repo.deduct.await_args_list
        assert calls[0].args == (first.id, Decimal("5.00"))
        assert calls[1].args == (second.id, Decimal("7.00"))
        assert service._repo.create_transaction.await_count == 2
        transaction = service._repo.create_transaction.await_args_list[1].args[0]
        assert transaction.balance_before == Decimal("10.00")
        assert transaction.balance_after == Decimal("3.00")

    @pytest.mark.asyncio
    async def test_insufficient_cards(self, service: GiftCardService, rider_id: UUID) -> None:
        """Карт меньше долга: списано сколько есть."""
        service._repo.list_active_by_recipient.return_value = [_card(remaining_amount=Decimal("4.00"))]
        service._repo.deduct.return_value = Decimal("0.00")

        assert await service.use_balance(rider_id, uuid4(), Decimal("10.00")) == Decimal("4.00")

    @pytest.mark.asyncio
    async def test_cas_retry_with_fresh_balance(self, service: GiftCardService, rider_id: UUID) -> None:
        """Остаток изменился параллельно: перечитываем и списываем свежий."""
        card = _card(remaining_amount=Decimal("10.00"))
        service._repo.list_active_by_recipient.return_value = [card]
        service._repo.deduct.side_effect = [None, Decimal("0.00")]
        service._repo.get_by_id.return_value = _card(id=card.id, remaining_amount=Decimal("5.00"))

        deducted = await service.use_balance(rider_id, uuid4(), Decimal("8.00"))

        assert deducted == Decimal("5.00")
        assert service._repo.deduct.await_args_list[1].args == (card.id, Decimal("5.00"))

    @pytest.mark.asyncio
    async def test_card_skipped_after_attempts(self, service: GiftCardService, rider_id: UUID) -> None:
        card = _card(remaining_amount=Decimal("10.00"))
        service._repo.list_active_by_recipient.return_value = [card]
        service._repo.deduct.return_value = None
        service._repo.get_by_id.return_value = card

        deducted = await service.use_balance(rider_id, uuid4(), Decimal("8.00"))

        assert deducted == Decimal("0.00")
        assert service._repo.deduct.await_count == 3
        service._repo.create_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_card_disabled_meanwhile(self, service: GiftCardService, rider_id: UUID) -> None:
        card = _card()
        service._repo.list_active_by_recipient.return_value = [card]
        service._repo.deduct.return_value = None
        service._repo.get_by_id.return_value = _card(id=card.id, status=GiftCardStatus.DISABLED)

        assert await service.use_balance(rider_id, uuid4(), Decimal("8.00")) == Decimal("0.00")
        assert service._repo.deduct.await_count == 1


class TestBalanceAndAdmin:
    """Проверка баланса и администрирование."""

    @pytest.mark.asyncio
    async def test_check_balance_expired_invalid(self, service: GiftCardService) -> None:
        service._repo.get_by_code.return_value = _card(expires_at=NOW - timedelta(seconds=1))

        response = await service.check_balance("abcd-efgh-jklm-npqr")

        assert response.is_valid is False
        assert response.remaining_amount == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_check_balance_not_found(self, service: GiftCardService) -> None:
        service._repo.get_by_code.return_value = None

        with pytest.raises(NotFoundError):
            await service.check_balance("ZZZZ")

    @pytest.mark.asyncio
    async def test_create_bulk(self, service: GiftCardService) -> None:
        service._repo.create_many.side_effect = lambda cards: cards

        response = await service.create_bulk(
            CreateBulkRequest(count=3, amount=Decimal("20"), card_type=GiftCardType.PROMOTIONAL, expires_in_days=30)
        )

        assert response.count == 3
        assert response.total_value == Decimal("60.00")
        assert len({card.code for card in response.cards}) == 3
        assert all(card.expires_at == NOW + timedelta(days=30) for card in response.cards)

    @pytest.mark.parametrize("count", [0, 1001])
    @pytest.mark.asyncio
    async def test_bulk_count_range(self, service: GiftCardService, count: int) -> None:
        with pytest.raises(BadRequestError, match="count must be between 1 and 1000"):
            await service.create_bulk(
                CreateBulkRequest(count=count, amount=Decimal("20"), card_type=GiftCardType.CORPORATE)
            )

    @pytest.mark.asyncio
    async def test_expire_cards(self, service: GiftCardService) -> None:
        service._repo.expire_overdue.return_value = 4

        assert await service.expire_cards() == 4
        service._repo.expire_overdue.assert_awaited_once_with(NOW)


class _SharedCard:
    """Одна карта в памяти со списанием compare-and-swap."""

    def __init__(self, card: GiftCard) -> None:
        self.card = card

    async def list_active_by_recipient(self, user_id: UUID, now: datetime) -> list[GiftCard]:
        await asyncio.sleep(0)
        return [self.card]

    async def deduct(self, card_id: UUID, amount: Decimal, conn=None) -> Decimal | None:
        await asyncio.sleep(0)
        if self.card.status != GiftCardStatus.ACTIVE or self.card.remaining_amount < amount:
            return None
        remaining = self.card.remaining_amount - amount
        status = GiftCardStatus.REDEEMED if remaining == 0 else self.card.status
        self.card = self.card.model_copy(update={"remaining_amount": remaining, "status": status})
        return remaining

    async def get_by_id(self, card_id: UUID) -> GiftCard:
        return self.card


class TestConcurrentUseBalance:
    """Два списания с одной карты одновременно."""

    @pytest.mark.asyncio
    async def test_no_overdraw(self, service: GiftCardService, rider_id: UUID) -> None:
        """Карта 30.00, два списания по 20.00: вместе не больше 30.00, карта обнулена."""
        store = _SharedCard(_card(remaining_amount=Decimal("30.00")))
        transactions = AsyncMock()
        service._repo = store
        store.create_transaction = transactions

        results = await asyncio.gather(
            service.use_balance(rider_id, uuid4(), Decimal("20.00")),
            service.use_balance(rider_id, uuid4(), Decimal("20.00")),
        )

        assert sorted(results) == [Decimal("10.00"), Decimal("20.00")]
        assert store.card.remaining_amount == Decimal("0.00")
        assert store.card.status == GiftCardStatus.REDEEMED
        assert transactions.await_count == 2
        balances = sorted(call.args[0].balance_after for call in transactions.await_args_list)
        assert balances == [Decimal("0.00"), Decimal("10.00")]
