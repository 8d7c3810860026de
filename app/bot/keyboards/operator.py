# app/bot/keyboards/operator.py
"""
Клавиатура под карточкой заказа в беседе менеджеров.

callback_data = "<глагол>_order_<id заказа>", например:
    accept_order_5f1c...   → принять
    cancel_order_5f1c...   → отменить
Разбирает её app/bot/services/callbacks.py::parse_action()
"""

from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from app.bot.services.status_machine import VERBS, allowed_targets
from infrastructure.database.models import OrderStatus


BUTTON_TEXTS = {
    "accept": "✅ Принять",
    "ready": "📦 Готов",
    "complete": "✔️ Выдан",
    "cancel": "❌ Отменить",
}


def action_callback_data(verb: str, order_id: str) -> str:
    return f"{verb}_order_{order_id}"


def new_order_keyboard(order_id: str) -> InlineKeyboardMarkup:
    """
    Все четыре кнопки, как под только что пришедшим заказом:

        [✅ Принять] [📦 Готов]
        [✔️ Выдан]   [❌ Отменить]
    """
    buttons = [InlineKeyboardButton(text=BUTTON_TEXTS[verb], callback_data=action_callback_data(verb, order_id))
               for verb in ("accept", "ready", "complete", "cancel")]

    return InlineKeyboardMarkup(inline_keyboard=[buttons[:2], buttons[2:]])


def order_actions_keyboard(order_id: str, status: OrderStatus) -> InlineKeyboardMarkup:
    """
    Кнопки после смены статуса: только то, что ещё можно сделать.
    Для конечных статусов (выдан / отменён) клавиатура пустая.
    """
    if OrderStatus(status) == OrderStatus.PENDING:
        return new_order_keyboard(order_id)

    row = []
    for target in (OrderStatus.READY, OrderStatus.COMPLETED, OrderStatus.CANCELLED):
        if target in allowed_targets(status):
            verb = VERBS[target]
            row.append(InlineKeyboardButton(text=BUTTON_TEXTS[verb], callback_data=action_callback_data(verb, order_id)))

    return InlineKeyboardMarkup(inline_keyboard=[row] if row else [])
