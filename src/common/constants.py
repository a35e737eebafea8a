# src/common/constants.py
"""
Общие константы и перечисления.
"""

from decimal import Decimal
from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class UserRole(str, Enum):
    """Роли пользователей (claim `role` в JWT)."""
    RIDER = "rider"
    DRIVER = "driver"
    ADMIN = "admin"


class EarningType(str, Enum):
    """Типы начислений водителю."""
    RIDE_FARE = "ride_fare"
    TIP = "tip"
    BONUS = "bonus"
    SURGE = "surge"
    PROMO = "promo"
    REFERRAL = "referral"
    DELIVERY = "delivery"
    WAIT_TIME = "wait_time"
    ADJUSTMENT = "adjustment"
    CANCELLATION_FEE = "cancellation_fee"


class PayoutStatus(str, Enum):
    """Статусы выплаты."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PayoutMethod(str, Enum):
    """Способы выплаты."""
    BANK_TRANSFER = "bank_transfer"
    INSTANT_PAY = "instant_pay"
    WALLET = "wallet"


class GoalPeriod(str, Enum):
    """Периоды целей по заработку."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class GiftCardStatus(str, Enum):
    """Статусы подарочной карты."""
    ACTIVE = "active"
    REDEEMED = "redeemed"
    EXPIRED = "expired"
    DISABLED = "disabled"
    PENDING = "pending"


class GiftCardType(str, Enum):
    """Типы подарочных карт."""
    PURCHASED = "purchased"
    PROMOTIONAL = "promotional"
    CORPORATE = "corporate"
    REFUND = "refund"


class LoyaltyTier(str, Enum):
    """Уровни программы лояльности."""
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


class PointsTransactionType(str, Enum):
    """Типы операций с баллами."""
    EARN = "earn"
    REDEEM = "redeem"
    EXPIRE = "expire"
    BONUS = "bonus"
    ADJUSTMENT = "adjustment"


class PointsSource(str, Enum):
    """Источники начисления/списания баллов."""
    RIDE = "ride"
    REFERRAL = "referral"
    PROMO = "promo"
    PROMOTION = "promotion"
    CHALLENGE = "challenge"
    BIRTHDAY = "birthday"
    STREAK = "streak"
    SIGNUP = "signup"


class RideStatus(str, Enum):
    """Статусы поездки (только те, что нужны проекциям)."""
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Денежные суммы храним с двумя знаками после запятой
MONEY_QUANT = Decimal("0.01")

# Алфавит для человекочитаемых идентификаторов (без 0/O/1/I/L)
REFERENCE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

# Множители начисления баллов по уровням
TIER_MULTIPLIERS: dict[LoyaltyTier, Decimal] = {
    LoyaltyTier.BRONZE: Decimal("1.00"),
    LoyaltyTier.SILVER: Decimal("1.25"),
    LoyaltyTier.GOLD: Decimal("1.50"),
    LoyaltyTier.PLATINUM: Decimal("2.00"),
}
