# app/bot/services/callbacks.py
"""
🔘 НАЖАТИЯ КНОПОК И ОТВЕТЫ МЕНЕДЖЕРОВ

Сюда приходят два вида событий из беседы менеджеров:

1. Нажатие кнопки под карточкой заказа
   callback_data = "accept_order_<id>" → handle_order_action()

2. Ответ (reply) менеджера на сообщение бота
   → ищем в исходном сообщении "🆔 Telegram ID: 123"
   → пересылаем ответ этому покупателю (handle_staff_reply)

События приходят либо сырым JSON через вебхук (from_update),
либо объектами aiogram при polling (from_query / from_message).
Дальше путь одинаковый.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from app.bot.services.notifications import Customer, NotificationDispatcher
from app.bot.services.status_machine import staff_label, status_for_action
from app.errors import InvalidTransitionError, NotFoundError, ParseError, UpstreamDeliveryError
from infrastructure.database.repositories import MessageRepository

import structlog

logger = structlog.get_logger()


ACTION_PATTERN = re.compile(r"^(accept|ready|complete|cancel)_order_(.+)$")

CUSTOMER_ID_PATTERN = re.compile(r"🆔.*?ID:\s*(\d+)")


def parse_action(data: Optional[str]) -> Tuple[str, str]:
    """
    "ready_order_5f1c..." → ("ready", "5f1c...")

    ParseError если строка не похожа на действие с заказом.
    """
    match = ACTION_PATTERN.match(data or "")
    if not match:
        raise ParseError(f"Unrecognized callback data {data!r}", data=data)
    return match.group(1), match.group(2)


def extract_customer_id(text: Optional[str]) -> Optional[str]:
    match = CUSTOMER_ID_PATTERN.search(text or "")
    return match.group(1) if match else None


# ==========================================
# ВХОДЯЩИЕ СОБЫТИЯ
# ==========================================

@dataclass
class ActionCallback:
    callback_id: str
    data: str
    chat_id: Optional[int] = None
    message_id: Optional[int] = None
    from_user_id: Optional[int] = None

    @classmethod
    def from_update(cls, update: dict) -> Optional["ActionCallback"]:
        """Telegram Update (dict) → ActionCallback, или None если это не нажатие кнопки."""
        query = update.get("callback_query")
        if not query:
            return None

        message = query.get("message") or {}
        return cls(
            callback_id=str(query["id"]),
            data=query.get("data") or "",
            chat_id=(message.get("chat") or {}).get("id"),
            message_id=message.get("message_id"),
            from_user_id=(query.get("from") or {}).get("id"),
        )

    @classmethod
    def from_query(cls, query) -> "ActionCallback":
        """aiogram.types.CallbackQuery → ActionCallback"""
        message = query.message
        return cls(
            callback_id=query.id,
            data=query.data or "",
            chat_id=message.chat.id if message else None,
            message_id=message.message_id if message else None,
            from_user_id=query.from_user.id if query.from_user else None,
        )


@dataclass
class StaffReply:
    text: str
    replied_text: str
    chat_id: Optional[int] = None
    from_user_id: Optional[int] = None

    @classmethod
    def from_update(cls, update: dict) -> Optional["StaffReply"]:
        """Telegram Update (dict) → StaffReply, или None если это не ответ на сообщение."""
        message = update.get("message") or {}
        replied = message.get("reply_to_message")
        if not replied:
            return None

        return cls(
            text=message.get("text") or "",
            replied_text=replied.get("text") or replied.get("caption") or "",
            chat_id=(message.get("chat") or {}).get("id"),
            from_user_id=(message.get("from") or {}).get("id"),
        )

    @classmethod
    def from_message(cls, message) -> Optional["StaffReply"]:
        """aiogram.types.Message → StaffReply"""
        replied = message.reply_to_message
        if replied is None:
            return None

        return cls(
            text=message.text or "",
            replied_text=replied.text or replied.caption or "",
            chat_id=message.chat.id,
            from_user_id=message.from_user.id if message.from_user else None,
        )


# ==========================================
# ОБРАБОТКА
# ==========================================

async def _answer(dispatcher: NotificationDispatcher, callback_id: str, text: str, show_alert: bool = False):
    try:
        await dispatcher.answer_action(callback_id, text, show_alert=show_alert)
    except UpstreamDeliveryError:
        # Кнопка покрутит "часики" и успокоится сама
        pass


async def handle_order_action(callback: ActionCallback, service, dispatcher: NotificationDispatcher) -> dict:
    """
    Нажатие кнопки под карточкой заказа.

    Всегда отвечает на callback и никогда не кидает исключения наружу:
    вебхук должен вернуть Telegram 200, иначе он будет слать событие снова.

    service: OrderService
    """
    try:
        verb, order_id = parse_action(callback.data)
    except ParseError as e:
        logger.warning("callback_unparsed", data=callback.data)
        await _answer(dispatcher, callback.callback_id, "Неизвестное действие")
        return {"ok": False, "error": e.message}

    target = status_for_action(verb)

    try:
        order, changed = await service.change_status(order_id, target, annotate=False)
    except NotFoundError as e:
        logger.warning("callback_order_not_found", order_id=order_id, action=verb)
        await _answer(dispatcher, callback.callback_id, "Заказ не найден", show_alert=True)
        return {"ok": False, "error": e.message}
    except InvalidTransitionError as e:
        logger.info("callback_transition_rejected", order_id=order_id, action=verb, **e.context)
        await _answer(
            dispatcher,
            callback.callback_id,
            f"Нельзя: заказ сейчас в статусе «{staff_label(e.context['current'])}»",
            show_alert=True
        )
        return {"ok": False, "error": e.message}

    if changed:
        await _answer(dispatcher, callback.callback_id, f"Статус: {staff_label(order.status)}")

        if callback.chat_id is not None and callback.message_id is not None:
            try:
                await dispatcher.annotate_staff_message(callback.chat_id, callback.message_id, order)
            except UpstreamDeliveryError:
                pass
    else:
        await _answer(dispatcher, callback.callback_id, "Заказ уже в этом статусе")

    logger.info(
        "callback_handled",
        order_id=order.id,
        action=verb,
        changed=changed,
        staff_user_id=callback.from_user_id
    )

    return {"ok": True, "orderId": order.id, "status": order.status.value, "changed": changed}


async def handle_staff_reply(
    reply: StaffReply,
    messages: MessageRepository,
    dispatcher: NotificationDispatcher
) -> bool:
    """
    Менеджер ответил (reply) на сообщение бота.

    True: ответ сохранён и ушёл покупателю.
    False: непонятно кому отвечать, пустой ответ или Telegram не доставил.
    """
    telegram_user_id = extract_customer_id(reply.replied_text)
    if telegram_user_id is None:
        logger.info("staff_reply_without_customer", chat_id=reply.chat_id)
        return False

    if not reply.text.strip():
        logger.info("staff_reply_empty", telegram_user_id=telegram_user_id)
        return False

    try:
        await dispatcher.relay_chat_message(
            messages,
            from_customer=False,
            text=reply.text,
            customer=Customer(telegram_user_id=telegram_user_id)
        )
    except UpstreamDeliveryError:
        return False

    return True
