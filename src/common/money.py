# src/common/money.py
"""
Операции с денежными суммами (Decimal, два знака).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from src.common.constants import MONEY_QUANT

ZERO = Decimal("0.00")


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    """Приводит значение к Decimal с двумя знаками (ROUND_HALF_UP). None -> 0.00."""
    if value is None:
        return ZERO
    if isinstance(value, float):
        # float через str, чтобы не тащить двоичный хвост
        value = str(value)
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def split_commission(gross: Decimal, rate: Decimal) -> tuple[Decimal, Decimal]:
    """
    Делит валовую сумму на комиссию и чистый доход.

    Комиссия округляется, чистый доход считается вычитанием,
    поэтому net + commission == gross всегда точно.
    """
    gross = to_money(gross)
    commission = to_money(gross * rate)
    return commission, gross - commission


def format_money(value: Decimal) -> str:
    """Строка с ровно двумя знаками: 2.5 -> '2.50'."""
    return f"{to_money(value):.2f}"
