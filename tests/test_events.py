"""Тесты шины событий заказов"""

import asyncio
import json
from decimal import Decimal

from redis.exceptions import ConnectionError as RedisConnectionError

from app.bot.services.events import (
    INSERT,
    UPDATE,
    OrderEvent,
    OrderEventBus,
    RedisEventBridge,
    event_stream,
    watch_status_changes,
)
from app.bot.services.orders import CheckoutRequest
from infrastructure.database.models import OrderStatus
from tests.conftest import make_items


def _event(type_=UPDATE, status="accepted", old_status="pending", user="42", order_id="o1"):
    new = {"id": order_id, "status": status, "telegram_user_id": user}
    old = {"id": order_id, "status": old_status, "telegram_user_id": user} if type_ == UPDATE else None
    return OrderEvent(type=type_, new=new, old=old)


async def test_subscribe_and_close():
    bus = OrderEventBus()
    received = []

    subscription = bus.subscribe(received.append)
    await bus.publish(_event())
    subscription.close()
    subscription.close()
    await bus.publish(_event())

    assert len(received) == 1
    assert bus.subscriber_count == 0


async def test_filter_by_customer():
    bus = OrderEventBus()
    mine = []
    bus.subscribe(mine.append, telegram_user_id=42)

    await bus.publish(_event(user="42"))
    await bus.publish(_event(user="7"))

    assert [event.new["telegram_user_id"] for event in mine] == ["42"]


async def test_failing_subscriber_does_not_block_others():
    bus = OrderEventBus()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    async def async_ok(event):
        received.append(event)

    bus.subscribe(broken)
    bus.subscribe(async_ok)

    await bus.publish(_event())

    assert len(received) == 1


async def test_watch_status_changes_only_real_changes():
    bus = OrderEventBus()
    toasts = []
    watch_status_changes(bus, "42", lambda order_id, status, label: toasts.append((order_id, status, label)))

    await bus.publish(_event(type_=INSERT, status="pending"))
    await bus.publish(_event(status="accepted", old_status="accepted"))
    await bus.publish(_event(status="ready", old_status="accepted"))

    assert toasts == [("o1", OrderStatus.READY, "Готов к выдаче")]


async def test_checkout_and_status_change_publish_events(order_service, bus, test_products):
    events = []
    bus.subscribe(events.append)

    items = make_items(("screen", 3500, 1))
    result = await order_service.checkout(CheckoutRequest(items=items, total=Decimal("3500"), phone_number="+79991234567"))
    await order_service.change_status(result.order.id, OrderStatus.ACCEPTED)
    await order_service.change_status(result.order.id, OrderStatus.ACCEPTED)

    assert [event.type for event in events] == [INSERT, UPDATE]
    assert events[1].old["status"] == "pending"
    assert events[1].new["status"] == "accepted"


async def test_event_stream_frames():
    bus = OrderEventBus()
    stream = event_stream(bus, telegram_user_id="42", heartbeat=0.01)

    assert await stream.__anext__() == ": ping\n\n"

    next_frame = asyncio.ensure_future(stream.__anext__())
    await asyncio.sleep(0)
    await bus.publish(_event(status="ready", old_status="accepted"))
    frame = await next_frame
    while frame == ": ping\n\n":
        frame = await stream.__anext__()

    assert frame.startswith("event: order\ndata: ")
    payload = json.loads(frame[len("event: order\ndata: "):].strip())
    assert payload["new"]["status"] == "ready"
    assert payload["old"]["status"] == "accepted"

    await stream.aclose()
    assert bus.subscriber_count == 0


class FakeRedis:
    def __init__(self, error=None):
        self.published = []
        self.error = error

    async def publish(self, channel, message):
        if self.error is not None:
            raise self.error
        self.published.append((channel, message))


async def test_redis_bridge_publishes():
    redis = FakeRedis()
    bus = OrderEventBus(bridge=RedisEventBridge(redis, "orders:changes"))

    await bus.publish(_event())

    [(channel, message)] = redis.published
    assert channel == "orders:changes"
    assert OrderEvent.from_dict(json.loads(message)) == _event()


async def test_redis_bridge_failure_is_logged_not_raised():
    bus = OrderEventBus(bridge=RedisEventBridge(FakeRedis(RedisConnectionError("down")), "orders:changes"))

    await bus.publish(_event())
