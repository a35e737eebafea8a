# src/core/earnings/__init__.py
"""
Модуль заработка водителей: начисления, выплаты, счета, цели.
"""

from src.core.earnings.models import (
    BankAccount,
    Earning,
    EarningGoal,
    EarningGoalStatus,
    EarningsSummary,
    Payout,
)
from src.core.earnings.repository import (
    BankAccountRepository,
    EarningGoalRepository,
    EarningRepository,
    PayoutRepository,
)
from src.core.earnings.service import EarningsService
from src.core.earnings.state_machine import PayoutStateMachine

__all__ = [
    "BankAccount",
    "Earning",
    "EarningGoal",
    "EarningGoalStatus",
    "EarningsSummary",
    "Payout",
    "BankAccountRepository",
    "EarningGoalRepository",
    "EarningRepository",
    "PayoutRepository",
    "EarningsService",
    "PayoutStateMachine",
]
