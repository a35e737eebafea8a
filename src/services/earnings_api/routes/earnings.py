# src/services/earnings_api/routes/earnings.py
"""
Маршруты водителя: сводки, история, баланс, выплаты, счета, цели.
"""

from __future__ import annotations

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from src.core.earnings import EarningsService
from src.core.earnings.models import (
    AddBankAccountRequest,
    BalanceResponse,
    EarningGoalListResponse,
    RequestPayoutRequest,
    SetEarningGoalRequest,
)
from src.services.earnings_api.auth import CallerIdentity, get_current_user
from src.services.earnings_api.dependencies import get_earnings_service
from src.services.earnings_api.responses import created, ok
from src.shared.models.common import MessageResponse

router = APIRouter(prefix="/earnings", tags=["Earnings"])

Caller = Annotated[CallerIdentity, Depends(get_current_user)]
Service = Annotated[EarningsService, Depends(get_earnings_service)]


@router.get("/summary")
async def get_summary(
    caller: Caller,
    service: Service,
    period: str = "today",
    tz: Optional[str] = None,
) -> JSONResponse:
    return ok(await service.get_summary(caller.user_id, period, tz))


@router.get("/daily")
async def get_daily(
    caller: Caller,
    service: Service,
    period: str = "this_week",
    tz: Optional[str] = None,
) -> JSONResponse:
    return ok(await service.get_daily(caller.user_id, period, tz))


@router.get("/history")
async def get_history(
    caller: Caller,
    service: Service,
    period: str = "this_month",
    page: int = Query(1),
    page_size: int = Query(20),
    tz: Optional[str] = None,
) -> JSONResponse:
    return ok(await service.get_history(caller.user_id, period, page, page_size, tz))


@router.get("/balance")
async def get_balance(caller: Caller, service: Service) -> JSONResponse:
    balance = await service.get_unpaid_balance(caller.user_id)
    return ok(BalanceResponse(unpaid_balance=balance, currency=service.currency))


# === ВЫПЛАТЫ ===

@router.post("/payouts")
async def request_payout(request: RequestPayoutRequest, caller: Caller, service: Service) -> JSONResponse:
    return created(await service.request_payout(caller.user_id, request))


@router.get("/payouts")
async def get_payouts(
    caller: Caller,
    service: Service,
    page: int = Query(1),
    page_size: int = Query(20),
) -> JSONResponse:
    return ok(await service.get_payout_history(caller.user_id, page, page_size))


# === БАНКОВСКИЕ СЧЕТА ===

@router.post("/bank-accounts")
async def add_bank_account(request: AddBankAccountRequest, caller: Caller, service: Service) -> JSONResponse:
    return created(await service.add_bank_account(caller.user_id, request))


@router.get("/bank-accounts")
async def list_bank_accounts(caller: Caller, service: Service) -> JSONResponse:
    return ok(await service.list_bank_accounts(caller.user_id))


@router.delete("/bank-accounts/{account_id}")
async def delete_bank_account(account_id: UUID, caller: Caller, service: Service) -> JSONResponse:
    await service.delete_bank_account(caller.user_id, account_id)
    return ok(MessageResponse(message="bank account deleted"))


# === ЦЕЛИ ===

@router.post("/goals")
async def set_goal(request: SetEarningGoalRequest, caller: Caller, service: Service) -> JSONResponse:
    return created(await service.set_earning_goal(caller.user_id, request))


@router.get("/goals")
async def get_goals(caller: Caller, service: Service, tz: Optional[str] = None) -> JSONResponse:
    goals = await service.get_earning_goals(caller.user_id, tz)
    return ok(EarningGoalListResponse(goals=goals))
