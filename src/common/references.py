# src/common/references.py
"""
Генераторы человекочитаемых идентификаторов.

Все коды строятся из алфавита без похожих символов (0/O, 1/I/L)
с использованием криптостойкого генератора `secrets`.
"""

from __future__ import annotations

import secrets

from src.common.constants import REFERENCE_ALPHABET


def random_chars(length: int, alphabet: str = REFERENCE_ALPHABET) -> str:
    """Возвращает `length` равномерно выбранных символов алфавита."""
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_payout_reference() -> str:
    """PAY-XXXXXXXXXX"""
    return f"PAY-{random_chars(10)}"


def generate_receipt_id() -> str:
    """RCP-XXXXXX-XXXXXX"""
    return f"RCP-{random_chars(6)}-{random_chars(6)}"


def generate_gift_card_code() -> str:
    """XXXX-XXXX-XXXX-XXXX"""
    return "-".join(random_chars(4) for _ in range(4))


def mask_account_number(account_number: str) -> str:
    """
    Маскирует номер счёта для ответа API.

    Возвращает "****" + последние 4 символа. Короткие номера
    не раскрываются вовсе.
    """
    if len(account_number) > 4:
        return "****" + account_number[-4:]
    return "****"
