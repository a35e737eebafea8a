# src/core/giftcards/__init__.py
"""
Модуль подарочных карт.
"""

from src.core.giftcards.models import GiftCard, GiftCardTransaction
from src.core.giftcards.repository import GiftCardRepository
from src.core.giftcards.service import GiftCardService

__all__ = [
    "GiftCard",
    "GiftCardTransaction",
    "GiftCardRepository",
    "GiftCardService",
]
