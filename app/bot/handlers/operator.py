# app/bot/handlers/operator.py
"""
Обработчики для беседы менеджеров.

- Нажатие кнопок под карточкой заказа (accept/ready/complete/cancel)
- Ответ (reply) на сообщение клиента → уходит клиенту в личку

Сама логика в app/bot/services/callbacks.py,
тут только достаём session / notifier / bus из контекста aiogram.
"""

from aiogram import Router, F, types
from sqlalchemy.ext.asyncio import AsyncSession

from app.bot.filters.role import IsStaffChat
from app.bot.services.callbacks import (
    ACTION_PATTERN,
    ActionCallback,
    StaffReply,
    handle_order_action,
    handle_staff_reply,
)
from app.bot.services.events import OrderEventBus
from app.bot.services.notifications import NotificationDispatcher
from app.bot.services.orders import OrderService
from config.settings import config
from infrastructure.database.repositories import MessageRepository

import structlog

logger = structlog.get_logger()

router = Router(name="staff")


# ==========================================
# КНОПКИ ПОД КАРТОЧКОЙ ЗАКАЗА
# ==========================================

@router.callback_query(F.data.regexp(ACTION_PATTERN))
async def on_order_action(
    query: types.CallbackQuery,
    session: AsyncSession,
    notifier: NotificationDispatcher,
    bus: OrderEventBus
):
    """
    Менеджер нажал кнопку.

    Не фильтруем по чату: кнопки существуют только
    под карточками, которые бот сам отправил в беседу.
    """
    service = OrderService(session, notifier, bus)
    result = await handle_order_action(ActionCallback.from_query(query), service, notifier)

    if not result["ok"]:
        logger.info("staff_action_rejected", user_id=query.from_user.id, error=result.get("error"))


# ==========================================
# ОТВЕТ МЕНЕДЖЕРА КЛИЕНТУ
# ==========================================

@router.message(IsStaffChat(config.staff_chat_id), F.reply_to_message, F.text)
async def on_staff_reply(
    message: types.Message,
    session: AsyncSession,
    notifier: NotificationDispatcher
):
    """
    Менеджер ответил на сообщение бота:
    ищем 🆔 клиента в исходном сообщении и пересылаем ответ.
    """
    reply = StaffReply.from_message(message)
    delivered = await handle_staff_reply(reply, MessageRepository(session), notifier)

    if delivered:
        await message.reply("✅ Отправлено клиенту")
