"""Тесты кнопок под карточкой заказа и ответов менеджеров"""

import asyncio
from decimal import Decimal

import pytest

from app.bot.services.callbacks import (
    ActionCallback,
    StaffReply,
    extract_customer_id,
    handle_order_action,
    handle_staff_reply,
    parse_action,
)
from app.bot.services.notifications import Customer
from app.bot.services.orders import CheckoutRequest
from app.errors import ParseError
from infrastructure.database.models import OrderStatus
from infrastructure.database.repositories import MessageRepository, OrderRepository
from tests.conftest import STAFF_CHAT_ID, make_items


@pytest.fixture
async def placed_order(test_db, test_products, order_service, fake_bot):
    """Заказ Ивана, карточка уже в беседе менеджеров."""
    result = await order_service.checkout(CheckoutRequest(
        items=make_items(("screen", 3500, 1)),
        total=Decimal("3500"),
        phone_number="+79990001111",
        customer=Customer(telegram_user_id="123456789", username="ivan", first_name="Иван"),
    ))
    fake_bot.calls.clear()
    return result.order


def tap(order, verb, callback_id="cb-1"):
    return ActionCallback(
        callback_id=callback_id,
        data=f"{verb}_order_{order.id}",
        chat_id=STAFF_CHAT_ID,
        message_id=order.staff_message_id or 101,
        from_user_id=555,
    )


# ==========================================
# РАЗБОР callback_data
# ==========================================

def test_parse_action():
    assert parse_action("accept_order_5f1c-42") == ("accept", "5f1c-42")
    assert parse_action("cancel_order_a_b_c") == ("cancel", "a_b_c")


@pytest.mark.parametrize("data", ["", "accept_order_", "refund_order_1", "accept-order-1", None])
def test_parse_action_rejects_garbage(data):
    with pytest.raises(ParseError):
        parse_action(data)


def test_extract_customer_id():
    text = "💬 Сообщение от клиента\n\n👤 Иван\n🆔 Telegram ID: 123456789\n📝 Сообщение:"

    assert extract_customer_id(text) == "123456789"
    assert extract_customer_id("просто текст") is None


def test_callback_from_update():
    callback = ActionCallback.from_update({
        "update_id": 1,
        "callback_query": {
            "id": "777",
            "from": {"id": 555},
            "data": "ready_order_abc",
            "message": {"message_id": 42, "chat": {"id": STAFF_CHAT_ID}},
        },
    })

    assert callback == ActionCallback("777", "ready_order_abc", STAFF_CHAT_ID, 42, 555)
    assert ActionCallback.from_update({"update_id": 2, "message": {}}) is None


def test_staff_reply_from_update():
    reply = StaffReply.from_update({
        "message": {
            "text": "Готово, приезжайте",
            "chat": {"id": STAFF_CHAT_ID},
            "from": {"id": 555},
            "reply_to_message": {"text": "🆔 Telegram ID: 42"},
        },
    })

    assert reply.text == "Готово, приезжайте"
    assert reply.replied_text == "🆔 Telegram ID: 42"
    assert StaffReply.from_update({"message": {"text": "без reply"}}) is None


# ==========================================
# НАЖАТИЯ
# ==========================================

async def test_accept_changes_status_and_notifies(test_db, placed_order, order_service, notifier, fake_bot):
    result = await handle_order_action(tap(placed_order, "accept"), order_service, notifier)

    assert result == {"ok": True, "orderId": placed_order.id, "status": "accepted", "changed": True}
    order = await OrderRepository(test_db).get_by_id(placed_order.id)
    assert order.status == OrderStatus.ACCEPTED

    [customer_message] = fake_bot.sent("send_message")
    assert customer_message["chat_id"] == 123456789
    assert "Принят в работу" in customer_message["text"]

    [edit] = fake_bot.sent("edit_message_text")
    assert edit["text"].endswith("⚡ Статус: ✅ Принят")
    buttons = [button.callback_data for row in edit["reply_markup"].inline_keyboard for button in row]
    assert buttons == [f"ready_order_{placed_order.id}", f"cancel_order_{placed_order.id}"]

    [answer] = fake_bot.sent("answer_callback_query")
    assert answer["callback_query_id"] == "cb-1"


async def test_repeated_tap_is_idempotent(test_db, placed_order, order_service, notifier, fake_bot, bus):
    events = []
    bus.subscribe(events.append)

    first = await handle_order_action(tap(placed_order, "accept", "cb-1"), order_service, notifier)
    second = await handle_order_action(tap(placed_order, "accept", "cb-2"), order_service, notifier)

    assert first["changed"] is True
    assert second == {"ok": True, "orderId": placed_order.id, "status": "accepted", "changed": False}
    assert len(fake_bot.sent("send_message")) == 1
    assert len(fake_bot.sent("answer_callback_query")) == 2
    assert len(events) == 1


async def test_illegal_transition_is_rejected(test_db, placed_order, order_service, notifier, fake_bot):
    result = await handle_order_action(tap(placed_order, "complete"), order_service, notifier)

    assert result["ok"] is False
    order = await OrderRepository(test_db).get_by_id(placed_order.id)
    assert order.status == OrderStatus.PENDING

    [answer] = fake_bot.sent("answer_callback_query")
    assert answer["show_alert"] is True
    assert fake_bot.sent("send_message") == []


async def test_unknown_order(test_db, order_service, notifier, fake_bot):
    callback = ActionCallback(callback_id="cb-9", data="accept_order_missing", chat_id=STAFF_CHAT_ID, message_id=1)

    result = await handle_order_action(callback, order_service, notifier)

    assert result["ok"] is False
    assert fake_bot.sent("answer_callback_query")[0]["text"] == "Заказ не найден"


async def test_garbage_callback_is_acknowledged(order_service, notifier, fake_bot):
    result = await handle_order_action(ActionCallback("cb-0", "hello"), order_service, notifier)

    assert result["ok"] is False
    assert len(fake_bot.sent("answer_callback_query")) == 1


async def test_cancel_from_ready(test_db, placed_order, order_service, notifier, fake_bot):
    await handle_order_action(tap(placed_order, "accept"), order_service, notifier)
    await handle_order_action(tap(placed_order, "ready"), order_service, notifier)
    result = await handle_order_action(tap(placed_order, "cancel"), order_service, notifier)

    assert result["status"] == "cancelled"
    assert fake_bot.sent("send_message")[-1]["text"].endswith("Статус: Отменён")

    last_edit = fake_bot.sent("edit_message_text")[-1]
    assert last_edit["text"].count("⚡ Статус:") == 1
    assert last_edit["reply_markup"].inline_keyboard == []

    again = await handle_order_action(tap(placed_order, "accept"), order_service, notifier)
    assert again["ok"] is False


async def test_guest_order_gets_no_customer_message(test_db, test_products, order_service, notifier, fake_bot):
    result = await order_service.checkout(CheckoutRequest(
        items=make_items(("screen", 3500, 1)),
        total=Decimal("3500"),
        phone_number="+79990001111",
    ))
    fake_bot.calls.clear()

    await handle_order_action(tap(result.order, "accept"), order_service, notifier)

    assert fake_bot.sent("send_message") == []
    assert len(fake_bot.sent("edit_message_text")) == 1


async def test_telegram_failure_keeps_status(test_db, placed_order, order_service, notifier, fake_bot):
    fake_bot.fail["send_message"] = asyncio.TimeoutError()
    fake_bot.fail["answer_callback_query"] = asyncio.TimeoutError()

    result = await handle_order_action(tap(placed_order, "accept"), order_service, notifier)

    assert result["ok"] is True
    order = await OrderRepository(test_db).get_by_id(placed_order.id)
    assert order.status == OrderStatus.ACCEPTED


async def test_admin_change_reannotates_stored_card(test_db, placed_order, order_service, fake_bot):
    order, changed = await order_service.change_status(placed_order.id, OrderStatus.ACCEPTED)

    assert changed is True
    [edit] = fake_bot.sent("edit_message_text")
    assert edit["chat_id"] == STAFF_CHAT_ID
    assert edit["message_id"] == order.staff_message_id


# ==========================================
# ОТВЕТЫ МЕНЕДЖЕРОВ
# ==========================================

async def test_staff_reply_reaches_customer(test_db, notifier, fake_bot):
    reply = StaffReply(
        text="Можно забирать",
        replied_text="💬 Сообщение от клиента\n👤 Иван\n🆔 Telegram ID: 123456789",
        chat_id=STAFF_CHAT_ID,
    )

    assert await handle_staff_reply(reply, MessageRepository(test_db), notifier) is True

    [sent] = fake_bot.sent("send_message")
    assert sent["chat_id"] == 123456789
    assert sent["text"].startswith("💬 Ответ от менеджера:")

    [saved] = await MessageRepository(test_db).get_history("123456789")
    assert saved.is_from_manager is True
    assert saved.message == "Можно забирать"


async def test_staff_reply_without_customer_id_is_dropped(test_db, notifier, fake_bot):
    reply = StaffReply(text="Привет", replied_text="✅ Бот запустился", chat_id=STAFF_CHAT_ID)

    assert await handle_staff_reply(reply, MessageRepository(test_db), notifier) is False
    assert fake_bot.calls == []
