# app/bot/handlers/client.py
"""
Обработчики для клиента (покупателя) в личке с ботом.

- /start: приветствие и кнопка магазина (Mini App)
- /orders: мои заказы и их статусы
- любой другой текст: сообщение менеджерам
"""

from aiogram import Router, F, types
from aiogram.enums import ParseMode
from aiogram.filters import Command, CommandStart
from sqlalchemy.ext.asyncio import AsyncSession

from app.bot.filters.role import IsPrivateChat
from app.bot.keyboards.client import shop_keyboard
from app.bot.services.notifications import Customer, NotificationDispatcher
from app.bot.utils.text import customer_orders_text
from app.errors import ConfigurationError, UpstreamDeliveryError
from config.settings import config
from infrastructure.database.repositories import MessageRepository, OrderRepository

import structlog

logger = structlog.get_logger()

router = Router(name="client")
router.message.filter(IsPrivateChat())


# ==========================================
# КОМАНДА: /start
# ==========================================

@router.message(CommandStart())
async def cmd_start(message: types.Message):
    """Приветствие + кнопка "🛍 Открыть магазин"."""
    name = message.from_user.first_name or "друг"

    await message.answer(
        f"👋 Привет, {name}!\n\n"
        "Это бот магазина «Доктор Гаджет».\n"
        "Открывайте магазин кнопкой ниже, а если есть вопрос — "
        "просто напишите его сюда, менеджер ответит.\n\n"
        "/orders — ваши заказы",
        reply_markup=shop_keyboard(config.webapp_url)
    )
    logger.info("client_started", user_id=message.from_user.id)


# ==========================================
# КОМАНДА: /orders
# ==========================================

@router.message(Command("orders"))
async def cmd_orders(message: types.Message, session: AsyncSession):
    orders = await OrderRepository(session).get_user_orders(str(message.from_user.id))

    await message.answer(customer_orders_text(orders), parse_mode=ParseMode.HTML)


# ==========================================
# СООБЩЕНИЕ МЕНЕДЖЕРАМ
# ==========================================

@router.message(F.text, ~F.text.startswith("/"))
async def relay_to_staff(
    message: types.Message,
    session: AsyncSession,
    notifier: NotificationDispatcher
):
    """Любой текст в личке → в беседу менеджеров (с историей в БД)."""
    try:
        await notifier.relay_chat_message(
            MessageRepository(session),
            from_customer=True,
            text=message.text,
            customer=Customer.from_user(message.from_user)
        )
    except (UpstreamDeliveryError, ConfigurationError):
        await message.answer("😔 Не удалось передать сообщение. Попробуйте позже.")
        return

    await message.answer("✅ Сообщение отправлено менеджеру. Ответ придёт сюда.")
