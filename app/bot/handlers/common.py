# app/bot/handlers/common.py
"""
Обработчики которые работают для всех пользователей.
"""

from aiogram import Router, types
from aiogram.filters import Command

import structlog

logger = structlog.get_logger()

router = Router(name="common")


# ==========================================
# КОМАНДА: /help
# ==========================================

@router.message(Command("help"))
async def cmd_help(message: types.Message):
    """Справка по командам."""

    help_text = (
        "🤖 Доступные команды:\n\n"
        "/start - Открыть магазин\n"
        "/orders - Мои заказы\n"
        "/help - Эта справка\n\n"
        "Есть вопрос? Просто напишите его сюда, менеджер ответит."
    )

    await message.answer(help_text)
    logger.info("help_command", user_id=message.from_user.id)
