"""Тесты оформления заказа"""

import asyncio
from decimal import Decimal

import pytest

from app.bot.services.events import INSERT
from app.bot.services.notifications import Customer
from app.bot.services.orders import CheckoutRequest, OrderService
from app.errors import OutOfStockError, ValidationError
from infrastructure.database.models import OrderStatus
from infrastructure.database.repositories import OrderRepository, ProductRepository
from tests.conftest import STAFF_CHAT_ID, make_items


def request(items, total, phone="+7 (999) 123-45-67", customer=None):
    return CheckoutRequest(items=items, total=Decimal(str(total)), phone_number=phone, customer=customer)


IVAN = Customer(telegram_user_id="123456789", username="ivan", first_name="Иван", last_name="Петров")


async def test_checkout_persists_and_decrements(test_db, test_products, order_service, fake_bot):
    result = await order_service.checkout(request(make_items(("screen", 3500, 2), ("battery", 1500, 1)), 8500, customer=IVAN))

    assert result.notified is True
    assert result.error is None

    order = await OrderRepository(test_db).get_by_id(result.order.id)
    assert order.status == OrderStatus.PENDING
    assert order.total_amount == Decimal("8500")
    assert order.customer_name == "Иван Петров"
    assert order.staff_chat_id == STAFF_CHAT_ID
    assert order.staff_message_id is not None

    products = ProductRepository(test_db)
    assert (await products.get_by_id("screen")).quantity == 3
    assert (await products.get_by_id("battery")).quantity == 1

    [card] = fake_bot.sent("send_message")
    assert card["chat_id"] == STAFF_CHAT_ID
    assert "123456789" in card["text"]
    assert "@ivan" in card["text"]


async def test_checkout_stores_normalized_phone(test_db, test_products, order_service, fake_bot):
    result = await order_service.checkout(request(make_items(("battery", 1500, 1)), 1500, phone="8 (999) 123-45-67"))

    order = await OrderRepository(test_db).get_by_id(result.order.id)
    assert order.phone_number == "+79991234567"
    assert [found.id for found in await OrderRepository(test_db).list_orders(search="+7999123")] == [order.id]

    [card] = fake_bot.sent("send_message")
    assert "📞 Телефон: +79991234567" in card["text"]


async def test_staff_card_has_four_actions(test_db, test_products, order_service, fake_bot):
    result = await order_service.checkout(request(make_items(("screen", 3500, 1)), 3500, customer=IVAN))

    [card] = fake_bot.sent("send_message")
    buttons = [button.callback_data for row in card["reply_markup"].inline_keyboard for button in row]

    assert buttons == [
        f"accept_order_{result.order.id}",
        f"ready_order_{result.order.id}",
        f"complete_order_{result.order.id}",
        f"cancel_order_{result.order.id}",
    ]


async def test_checkout_publishes_insert(test_db, test_products, order_service, bus):
    events = []
    bus.subscribe(events.append)

    result = await order_service.checkout(request(make_items(("screen", 3500, 1)), 3500))

    assert [event.type for event in events] == [INSERT]
    assert events[0].new["id"] == result.order.id
    assert events[0].new["status"] == "pending"


async def test_checkout_missing_product_still_creates_order(test_db, test_products, order_service):
    result = await order_service.checkout(request(make_items(("deleted-product", 100, 1)), 100))

    assert await OrderRepository(test_db).get_by_id(result.order.id) is not None


async def test_checkout_out_of_stock_rolls_back_everything(test_db, test_products, order_service, fake_bot):
    with pytest.raises(OutOfStockError):
        await order_service.checkout(request(make_items(("screen", 3500, 1), ("battery", 1500, 3)), 8000))

    assert await OrderRepository(test_db).list_orders() == []
    assert (await ProductRepository(test_db).get_by_id("screen")).quantity == 5
    assert fake_bot.sent("send_message") == []


async def test_concurrent_checkouts_only_k_succeed(file_sessions, notifier, bus):
    """Остаток 2, пять заказов по одной штуке одновременно, у каждого своя сессия."""

    async def attempt():
        async with file_sessions() as session:
            try:
                await OrderService(session, notifier, bus).checkout(request(make_items(("battery", 1500, 1)), 1500))
                return True
            except OutOfStockError:
                return False

    outcomes = await asyncio.gather(*(attempt() for _ in range(5)))

    assert outcomes.count(True) == 2
    async with file_sessions() as session:
        assert (await ProductRepository(session).get_by_id("battery")).quantity == 0
        assert len(await OrderRepository(session).list_orders()) == 2


async def test_concurrent_double_tap_notifies_customer_once(file_sessions, notifier, bus, fake_bot):
    async with file_sessions() as session:
        result = await OrderService(session, notifier, bus).checkout(
            request(make_items(("screen", 3500, 1)), 3500, customer=IVAN)
        )

    async def tap():
        async with file_sessions() as session:
            _, changed = await OrderService(session, notifier, bus).change_status(result.order.id, OrderStatus.ACCEPTED)
            return changed

    changed = await asyncio.gather(tap(), tap())

    assert sorted(changed) == [False, True]
    to_customer = [m for m in fake_bot.sent("send_message") if m["chat_id"] == 123456789]
    assert len(to_customer) == 1
    async with file_sessions() as session:
        assert (await OrderRepository(session).get_by_id(result.order.id)).status == OrderStatus.ACCEPTED


@pytest.mark.parametrize(
    "items, total, phone",
    [
        ([], 100, "+79990001111"),
        (make_items(("screen", 3500, 1)), 0, "+79990001111"),
        (make_items(("screen", 3500, 1)), 3400, "+79990001111"),
        (make_items(("screen", 3500, 1)), 3500, "12345"),
        (make_items(("screen", 3500, 1)), 3500, "+7999abc0001"),
    ],
)
async def test_checkout_validation(test_db, test_products, order_service, items, total, phone):
    with pytest.raises(ValidationError):
        await order_service.checkout(request(items, total, phone))

    assert await OrderRepository(test_db).list_orders() == []


async def test_total_tolerance(test_db, test_products, order_service):
    result = await order_service.checkout(request(make_items(("screen", 3500.005, 1)), 3500.01))

    assert result.order.id


async def test_notification_failure_is_partial_success(test_db, test_products, order_service, fake_bot):
    fake_bot.fail["send_message"] = asyncio.TimeoutError()

    result = await order_service.checkout(request(make_items(("screen", 3500, 1)), 3500))

    assert result.notified is False
    assert result.error
    order = await OrderRepository(test_db).get_by_id(result.order.id)
    assert order is not None
    assert order.staff_message_id is None
    assert (await ProductRepository(test_db).get_by_id("screen")).quantity == 4


# ==========================================
# POST /api/checkout
# ==========================================

async def test_checkout_endpoint(client, test_db, test_products, fake_bot):
    response = await client.post("/api/checkout", json={
        "user": {"id": 123456789, "first_name": "Иван", "username": "ivan"},
        "phoneNumber": "+79990001111",
        "items": make_items(("screen", 3500, 1)),
        "total": 3500,
        "timestamp": "2026-10-17T12:00:00Z",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["notified"] is True

    order = await OrderRepository(test_db).get_by_id(body["orderId"])
    assert order.telegram_user_id == "123456789"


async def test_checkout_endpoint_errors(client, test_products):
    response = await client.post("/api/checkout", json={
        "phoneNumber": "+79990001111",
        "items": make_items(("battery", 1500, 10)),
        "total": 15000,
    })
    assert response.status_code == 409
    assert "error" in response.json()

    response = await client.post("/api/checkout", json={"phoneNumber": "+79990001111", "total": 1})
    assert response.status_code == 400
    assert "items" in response.json()["error"]


async def test_checkout_endpoint_partial_success(client, test_products, fake_bot):
    fake_bot.fail["send_message"] = asyncio.TimeoutError()

    response = await client.post("/api/checkout", json={
        "phoneNumber": "+79990001111",
        "items": make_items(("screen", 3500, 1)),
        "total": 3500,
    })

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["notified"] is False
