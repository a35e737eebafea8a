# src/services/earnings_api/routes/admin.py
"""
Административные маршруты. Доступ только с ролью admin.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from src.core.earnings import EarningsService
from src.core.earnings.models import AdminBonusRequest, UpdatePayoutStatusRequest
from src.core.giftcards import GiftCardService
from src.core.giftcards.models import CreateBulkRequest, ExpireCardsResponse
from src.core.loyalty import LoyaltyService
from src.core.loyalty.models import AwardPointsRequest
from src.services.earnings_api.auth import CallerIdentity, require_admin
from src.services.earnings_api.dependencies import (
    get_earnings_service,
    get_gift_card_service,
    get_loyalty_service,
)
from src.services.earnings_api.responses import created, ok

router = APIRouter(prefix="/admin", tags=["Admin"])

Admin = Annotated[CallerIdentity, Depends(require_admin)]


@router.post("/earnings/bonus")
async def award_bonus(
    request: AdminBonusRequest,
    admin: Admin,
    service: Annotated[EarningsService, Depends(get_earnings_service)],
) -> JSONResponse:
    return created(await service.award_bonus(request.driver_id, request.amount, request.description))


@router.patch("/earnings/payouts/{payout_id}/status")
async def update_payout_status(
    payout_id: UUID,
    request: UpdatePayoutStatusRequest,
    admin: Admin,
    service: Annotated[EarningsService, Depends(get_earnings_service)],
) -> JSONResponse:
    return ok(await service.update_payout_status(payout_id, request.status, request.failure_reason))


@router.post("/gift-cards/bulk")
async def create_bulk(
    request: CreateBulkRequest,
    admin: Admin,
    service: Annotated[GiftCardService, Depends(get_gift_card_service)],
) -> JSONResponse:
    return created(await service.create_bulk(request))


@router.post("/gift-cards/expire")
async def expire_cards(
    admin: Admin,
    service: Annotated[GiftCardService, Depends(get_gift_card_service)],
) -> JSONResponse:
    return ok(ExpireCardsResponse(expired=await service.expire_cards()))


@router.post("/loyalty/points")
async def award_points(
    request: AwardPointsRequest,
    admin: Admin,
    service: Annotated[LoyaltyService, Depends(get_loyalty_service)],
) -> JSONResponse:
    txn = await service.earn_points(
        request.rider_id,
        request.points,
        request.source,
        source_id=request.source_id,
        description=request.description,
    )
    return created(txn)
