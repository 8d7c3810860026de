# app/bot/services/events.py
"""
📡 СОБЫТИЯ ЗАКАЗОВ (живые обновления)

Витрина и админка хотят видеть смену статуса сразу,
без перезагрузки страницы. Для этого:

1. OrderService после каждой записи в orders вызывает bus.publish()
2. Подписчики (SSE поток /api/orders/events, уведомления покупателя)
   получают OrderEvent(type, new, old)
3. Если настроен Redis, событие дублируется в канал orders:changes,
   чтобы его видели другие процессы

Доставка "как минимум один раз", порядок между параллельными
записями не гарантируется.
"""

import asyncio
import inspect
import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Union

from redis.exceptions import RedisError

from app.bot.services.status_machine import customer_label
from infrastructure.database.models import Order, OrderStatus

import structlog

logger = structlog.get_logger()


INSERT = "INSERT"
UPDATE = "UPDATE"


def order_snapshot(order: Order) -> dict:
    """Заказ → JSON-совместимый словарь (то что уходит подписчикам)."""
    return {
        "id": order.id,
        "status": OrderStatus(order.status).value,
        "items": order.items,
        "total_amount": float(order.total_amount),
        "phone_number": order.phone_number,
        "telegram_user_id": order.telegram_user_id,
        "telegram_username": order.telegram_username,
        "customer_name": order.customer_name,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
    }


@dataclass
class OrderEvent:
    type: str
    new: dict
    old: Optional[dict] = None

    @property
    def status_changed(self) -> bool:
        return self.old is not None and self.old.get("status") != self.new.get("status")

    def to_dict(self) -> dict:
        return {"type": self.type, "new": self.new, "old": self.old}

    @classmethod
    def from_dict(cls, data: dict) -> "OrderEvent":
        return cls(type=data["type"], new=data["new"], old=data.get("old"))


Callback = Callable[[OrderEvent], Union[None, Awaitable[None]]]


@dataclass(eq=False)
class Subscription:
    """Ручка подписки. close(): отписаться."""

    bus: "OrderEventBus"
    callback: Callback
    telegram_user_id: Optional[str] = None
    closed: bool = field(default=False)

    def matches(self, event: OrderEvent) -> bool:
        if self.telegram_user_id is None:
            return True
        return event.new.get("telegram_user_id") == self.telegram_user_id

    def close(self) -> None:
        if not self.closed:
            self.bus._remove(self)
            self.closed = True


class OrderEventBus:
    """
    Шина событий внутри процесса.

    Пример:
        bus = OrderEventBus()
        sub = bus.subscribe(lambda event: print(event.new["status"]))
        ...
        sub.close()
    """

    def __init__(self, bridge: Optional["RedisEventBridge"] = None):
        self._subscriptions: List[Subscription] = []
        self.bridge = bridge

    def subscribe(
        self,
        on_change: Callback,
        telegram_user_id: Optional[Union[str, int]] = None
    ) -> Subscription:
        """
        Подписаться на вставки/обновления заказов.
        telegram_user_id: только заказы этого покупателя.
        """
        subscription = Subscription(
            bus=self,
            callback=on_change,
            telegram_user_id=str(telegram_user_id) if telegram_user_id else None,
        )
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: OrderEvent) -> None:
        """
        Раздать событие подписчикам.

        Упавший подписчик пишется в лог и не мешает остальным.
        """
        for subscription in list(self._subscriptions):
            if not subscription.matches(event):
                continue
            try:
                result = subscription.callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "order_subscriber_failed",
                    order_id=event.new.get("id"),
                    event_type=event.type,
                    error=str(e),
                    error_type=type(e).__name__
                )

        if self.bridge is not None:
            await self.bridge.publish(event)


# ==========================================
# УВЕДОМЛЕНИЯ ПОКУПАТЕЛЯ О СМЕНЕ СТАТУСА
# ==========================================

def watch_status_changes(
    bus: OrderEventBus,
    telegram_user_id: Union[str, int],
    on_status: Callable[[str, OrderStatus, str], Any]
) -> Subscription:
    """
    Как тост "Статус заказа обновлён" в магазине:
    вызываем on_status(order_id, status, label) только
    когда у заказа этого покупателя реально поменялся статус.
    """

    async def _handle(event: OrderEvent):
        if event.type != UPDATE or not event.status_changed:
            return
        status = OrderStatus(event.new["status"])
        result = on_status(event.new["id"], status, customer_label(status))
        if inspect.isawaitable(result):
            await result

    return bus.subscribe(_handle, telegram_user_id=telegram_user_id)


# ==========================================
# SSE ПОТОК ДЛЯ ВИТРИНЫ И АДМИНКИ
# ==========================================

def format_sse(event: OrderEvent) -> str:
    payload = json.dumps(event.to_dict(), ensure_ascii=False)
    return f"event: order\ndata: {payload}\n\n"


async def event_stream(
    bus: OrderEventBus,
    telegram_user_id: Optional[Union[str, int]] = None,
    heartbeat: float = 15.0
) -> AsyncIterator[str]:
    """
    Server-Sent Events: по строке на событие,
    ": ping" раз в heartbeat секунд чтобы прокси не рвали соединение.
    Подписка закрывается когда клиент отключился.
    """
    queue: asyncio.Queue = asyncio.Queue()
    subscription = bus.subscribe(queue.put_nowait, telegram_user_id=telegram_user_id)

    try:
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield ": ping\n\n"
                continue
            yield format_sse(event)
    finally:
        subscription.close()


# ==========================================
# REDIS МОСТ (между процессами)
# ==========================================

class RedisEventBridge:
    """
    Публикует события в Redis pub/sub.

    Другой процесс (например отдельный дашборд) может
    слушать канал через listen().
    """

    def __init__(self, redis, channel: str):
        self.redis = redis
        self.channel = channel

    async def publish(self, event: OrderEvent) -> None:
        try:
            await self.redis.publish(self.channel, json.dumps(event.to_dict(), ensure_ascii=False))
        except RedisError as e:
            # Заказ уже в БД, событие можно потерять
            logger.warning("order_event_bridge_failed", channel=self.channel, error=str(e))

    async def listen(self) -> AsyncIterator[OrderEvent]:
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                yield OrderEvent.from_dict(json.loads(message["data"]))
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
