# app/bot/utils/text.py
"""
Тексты сообщений бота.

Все сообщения в беседу менеджеров идут с parse_mode=HTML,
поэтому всё, что пришло от пользователя, прогоняем через escape_html().
"""

import html
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from app.bot.services.status_machine import LABELS, staff_label
from infrastructure.database.models import Order, OrderStatus


STATUS_LINE_PREFIX = "⚡ Статус:"

MESSAGE_LIMIT = 4096
CAPTION_LIMIT = 1024

REPLY_HINT = "<i>Ответьте на это сообщение, чтобы связаться с клиентом</i>"
MANAGER_REPLY_HEADER = "💬 Ответ от менеджера:\n\n"

ITEM_NAME_LIMIT = 200
ITEMS_OVERFLOW = "… и ещё {count} поз."


def escape_html(value) -> str:
    if value is None:
        return ""
    return html.escape(str(value), quote=False)


def truncate(text: str, limit: int = MESSAGE_LIMIT, suffix: str = "…") -> str:
    """Telegram не принимает сообщения длиннее 4096 символов."""
    if len(text) <= limit:
        return text
    return text[: limit - len(suffix)] + suffix


def fit_escaped(value, budget: int, suffix: str = "…") -> str:
    """
    escape_html(value), но не длиннее budget символов.

    Режем исходный текст, а не готовый HTML: так "&lt;" не рвётся
    посередине, а разметка вокруг остаётся целой.
    """
    escaped = escape_html(value)
    if len(escaped) <= budget:
        return escaped

    room = budget - len(suffix)
    if room <= 0:
        return suffix[:max(budget, 0)]

    pieces = []
    for char in str(value):
        piece = escape_html(char)
        if len(piece) > room:
            break
        pieces.append(piece)
        room -= len(piece)
    return "".join(pieces) + suffix


def format_money(value: Union[Decimal, float, int]) -> str:
    return f"{Decimal(str(value)):.2f} ₽"


def format_datetime(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%d.%m.%Y %H:%M")


def full_name(first_name: Optional[str], last_name: Optional[str]) -> str:
    return " ".join(part for part in (first_name, last_name) if part).strip()


def customer_block(name: Optional[str], username: Optional[str], telegram_user_id) -> str:
    """
    Кто пишет / кто заказал.

    Строку "🆔 Telegram ID" потом ищет handle_staff_reply(),
    чтобы понять кому переслать ответ менеджера.
    """
    lines = [f"👤 {escape_html(name) or 'Без имени'}"]
    if username:
        lines.append(f"🔗 @{escape_html(username)}")
    lines.append(f"🆔 Telegram ID: <code>{escape_html(telegram_user_id)}</code>")
    return "\n".join(lines)


# ==========================================
# 🛒 КАРТОЧКА ЗАКАЗА (беседа менеджеров)
# ==========================================

def status_line(status: OrderStatus) -> str:
    return f"{STATUS_LINE_PREFIX} {staff_label(status)}"


def order_card_text(order: Order) -> str:
    """
    Карточка заказа для беседы менеджеров.

    Строка "⚡ Статус" всегда одна и всегда последняя:
    при смене статуса карточка просто рендерится заново.
    """
    parts = [f"🛒 <b>Новый заказ #{escape_html(order.short_id)}</b>", ""]

    parts.append("<b>Клиент:</b>")
    if order.is_guest:
        parts.append("👤 Гость (без Telegram)")
    else:
        parts.append(customer_block(order.customer_name, order.telegram_username, order.telegram_user_id))
    parts.append(f"📞 Телефон: {escape_html(order.phone_number)}")
    parts.append("")

    parts.append("<b>Товары:</b>")

    tail = ["", f"<b>Итого:</b> {format_money(order.total_amount)}"]
    if order.created_at:
        tail.append("")
        tail.append(f"📅 {format_datetime(order.created_at)}")
    tail.append("")
    tail.append(status_line(order.status))

    items = list(order.items or [])
    budget = MESSAGE_LIMIT - len("\n".join(parts + tail)) - len(ITEMS_OVERFLOW.format(count=len(items))) - 2

    for index, item in enumerate(items, start=1):
        price = Decimal(str(item.get("price", 0)))
        quantity = int(item.get("quantity", 0))
        block = (
            f"{index}. {fit_escaped(item.get('name'), ITEM_NAME_LIMIT)}\n"
            f"   💰 {format_money(price)} × {quantity} шт. = {format_money(price * quantity)}"
        )
        if len(block) + 1 > budget:
            parts.append(ITEMS_OVERFLOW.format(count=len(items) - index + 1))
            break
        budget -= len(block) + 1
        parts.append(block)

    return "\n".join(parts + tail)


# ==========================================
# 👤 ПОКУПАТЕЛЮ
# ==========================================

def customer_status_text(order: Order, status: OrderStatus) -> str:
    label = LABELS[OrderStatus(status)]
    return (
        f"{label.emoji} Статус заказа обновлён\n\n"
        f"Заказ #{order.short_id}\n"
        f"Статус: {label.customer}"
    )


def manager_reply_text(text: str) -> str:
    """Уходит клиенту без parse_mode, поэтому без экранирования."""
    return MANAGER_REPLY_HEADER + truncate(text, MESSAGE_LIMIT - len(MANAGER_REPLY_HEADER))


def customer_orders_text(orders) -> str:
    """Ответ на /orders."""
    if not orders:
        return "У вас пока нет заказов."

    lines = ["📦 <b>Ваши заказы:</b>", ""]
    for order in orders:
        label = LABELS[OrderStatus(order.status)]
        lines.append(
            f"#{escape_html(order.short_id)} — {format_money(order.total_amount)} — "
            f"{label.emoji} {label.customer}"
        )
    return truncate("\n".join(lines))


# ==========================================
# 💬 ЧАТ КЛИЕНТ → МЕНЕДЖЕРЫ
# ==========================================

def customer_message_text(
    text: str,
    name: Optional[str],
    username: Optional[str],
    telegram_user_id,
    order_id: Optional[str] = None
) -> str:
    """
    Сообщение клиента для беседы менеджеров.

    Режется только текст клиента: 🆔 и подсказка про ответ должны дойти целыми.
    """
    head = [
        "💬 <b>Сообщение от клиента</b>",
        "",
        customer_block(name, username, telegram_user_id),
    ]
    if order_id:
        head.append(f"📦 Заказ: #{escape_html(order_id[:8])}")
    head.extend(["", "📝 <b>Сообщение:</b>"])
    tail = ["", REPLY_HINT]

    frame = len("\n".join(head)) + len("\n".join(tail)) + 2
    body = fit_escaped(text, MESSAGE_LIMIT - frame)
    return "\n".join(head + [body] + tail)


# ==========================================
# 🔐 КОД ВХОДА И 🔔 ЗАЯВКИ С САЙТА
# ==========================================

def auth_code_text(code: str, ttl_minutes: int = 5) -> str:
    return f"🔐 Ваш код подтверждения: {code}\n\nКод действителен {ttl_minutes} минут."


def contact_request_text(name: str, phone: str, message: str, limit: int = MESSAGE_LIMIT) -> str:
    """limit: 4096 для сообщения, 1024 для подписи к фото."""
    head = (
        "🔔 <b>Новая заявка!</b>\n\n"
        f"👤 Имя: {fit_escaped(name, 100)}\n"
        f"📞 Телефон: {fit_escaped(phone, 30)}\n"
        "💬 Сообщение: "
    )
    return head + fit_escaped(message, limit - len(head))
