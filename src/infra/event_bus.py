# src/infra/event_bus.py
"""
Шина событий на базе RabbitMQ.
Используется для уведомлений о деньгах (выплаты, бонусы, подарочные карты).
Публикация best-effort: ошибка публикации логируется и не ломает запрос.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import aio_pika
from aio_pika import ExchangeType, Message
from aio_pika.abc import AbstractChannel, AbstractExchange, AbstractRobustConnection

from src.common.constants import TypeMsg
from src.common.logger import get_logger, log_error, log_info, log_warning

logger = get_logger("event_bus")


# =============================================================================
# ДОМЕННЫЕ СОБЫТИЯ
# =============================================================================

def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class DomainEvent:
    """Событие, публикуемое в exchange с routing_key = event_type."""
    event_type: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: str = field(default_factory=_utc_now_iso)

    def to_json(self) -> str:
        return json.dumps(
            {
                "event_id": self.event_id,
                "event_type": self.event_type,
                "timestamp": self.timestamp,
                "payload": self.payload,
            },
            ensure_ascii=False,
            default=str,
        )


class EventTypes:
    """Константы типов событий."""
    EARNING_BONUS_AWARDED = "earning.bonus_awarded"

    PAYOUT_REQUESTED = "payout.requested"
    PAYOUT_STATUS_CHANGED = "payout.status_changed"

    GIFT_CARD_PURCHASED = "gift_card.purchased"
    GIFT_CARD_REDEEMED = "gift_card.redeemed"

    LOYALTY_POINTS_EARNED = "loyalty.points_earned"


class EventBus:
    """
    Шина событий на базе RabbitMQ (topic exchange).

    - publish: публикация события
    - health_check: состояние соединения
    """

    _instance: EventBus | None = None

    def __new__(cls) -> EventBus:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._connection: AbstractRobustConnection | None = None
        self._channel: AbstractChannel | None = None
        self._exchange: AbstractExchange | None = None
        self._exchange_name = "ride.events"

    @property
    def is_connected(self) -> bool:
        """Проверяет, активно ли соединение."""
        return self._connection is not None and not self._connection.is_closed

    async def connect(
        self,
        url: str | None = None,
        exchange_name: str | None = None,
        prefetch_count: int = 10,
    ) -> None:
        """
        Подключается к RabbitMQ и объявляет exchange.

        Args:
            url: URL RabbitMQ (если None, берётся из конфига)
            exchange_name: Имя exchange
            prefetch_count: Количество сообщений для prefetch
        """
        if self.is_connected:
            return

        if url is None:
            from src.config import settings
            url = settings.rabbitmq.url
            exchange_name = settings.rabbitmq.RABBITMQ_EXCHANGE
            prefetch_count = settings.rabbitmq.RABBITMQ_PREFETCH_COUNT

        if exchange_name:
            self._exchange_name = exchange_name

        await log_info("Подключение к RabbitMQ...", type_msg=TypeMsg.INFO)

        self._connection = await aio_pika.connect_robust(url)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=prefetch_count)
        self._exchange = await self._channel.declare_exchange(
            self._exchange_name,
            ExchangeType.TOPIC,
            durable=True,
        )

        await log_info(f"RabbitMQ: exchange '{self._exchange_name}' готов", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает соединение с RabbitMQ."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            self._channel = None
            self._exchange = None
            await log_info("Соединение с RabbitMQ закрыто", type_msg=TypeMsg.INFO)

    async def publish(self, event: DomainEvent) -> bool:
        """
        Публикует событие. Никогда не бросает исключение.

        Returns:
            True, если событие ушло в exchange
        """
        if not self.is_connected or self._exchange is None:
            await log_warning(f"Событие {event.event_type} не опубликовано: нет соединения с RabbitMQ")
            return False

        try:
            message = Message(
                body=event.to_json().encode(),
                content_type="application/json",
                message_id=event.event_id,
                timestamp=datetime.now(timezone.utc),
            )
            await self._exchange.publish(message, routing_key=event.event_type)
        except Exception as e:
            await log_error(f"Ошибка публикации события {event.event_type}: {e}")
            return False

        await log_info(f"Событие опубликовано: {event.event_type}", type_msg=TypeMsg.DEBUG)
        return True

    async def health_check(self) -> bool:
        """Проверяет здоровье подключения к RabbitMQ."""
        return self.is_connected


# Глобальный экземпляр
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Возвращает глобальный экземпляр EventBus."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


async def init_event_bus() -> None:
    """
    Подключается к RabbitMQ по настройкам.
    Недоступный брокер не мешает старту: уведомления best-effort.
    """
    from src.config import settings

    if not settings.rabbitmq.RABBITMQ_ENABLED:
        await log_info("RabbitMQ отключён в конфигурации, уведомления не отправляются", type_msg=TypeMsg.INFO)
        return

    try:
        await get_event_bus().connect(
            url=settings.rabbitmq.url,
            exchange_name=settings.rabbitmq.RABBITMQ_EXCHANGE,
            prefetch_count=settings.rabbitmq.RABBITMQ_PREFETCH_COUNT,
        )
    except (aio_pika.exceptions.AMQPError, OSError) as e:
        await log_error(f"RabbitMQ недоступен ({settings.rabbitmq.RABBITMQ_HOST}): {e}")


async def close_event_bus() -> None:
    """Закрывает подключение к RabbitMQ."""
    await get_event_bus().disconnect()
