# src/services/earnings_api/routes/gift_cards.py
"""
Маршруты подарочных карт. Проверка баланса по коду публичная.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from src.core.giftcards import GiftCardService
from src.core.giftcards.models import (
    PurchaseGiftCardRequest,
    RedeemGiftCardRequest,
    UseBalanceRequest,
    UseBalanceResponse,
)
from src.services.earnings_api.auth import CallerIdentity, get_current_user
from src.services.earnings_api.dependencies import get_gift_card_service
from src.services.earnings_api.responses import created, ok

router = APIRouter(prefix="/gift-cards", tags=["Gift cards"])

Caller = Annotated[CallerIdentity, Depends(get_current_user)]
Service = Annotated[GiftCardService, Depends(get_gift_card_service)]


@router.post("")
async def purchase(request: PurchaseGiftCardRequest, caller: Caller, service: Service) -> JSONResponse:
    return created(await service.purchase(caller.user_id, request))


@router.post("/redeem")
async def redeem(request: RedeemGiftCardRequest, caller: Caller, service: Service) -> JSONResponse:
    return ok(await service.redeem(caller.user_id, request))


@router.post("/use")
async def use_balance(request: UseBalanceRequest, caller: Caller, service: Service) -> JSONResponse:
    deducted = await service.use_balance(caller.user_id, request.ride_id, request.amount)
    return ok(UseBalanceResponse(deducted=deducted, currency=service.currency))


@router.get("/me")
async def get_my_cards(caller: Caller, service: Service) -> JSONResponse:
    return ok(await service.get_my_summary(caller.user_id))


@router.get("/purchased")
async def get_purchased(caller: Caller, service: Service) -> JSONResponse:
    return ok(await service.get_purchased(caller.user_id))


@router.get("/balance/{code}")
async def check_balance(code: str, service: Service) -> JSONResponse:
    """Без авторизации: получатель проверяет карту до активации."""
    return ok(await service.check_balance(code))
