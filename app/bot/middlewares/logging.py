# app/bot/middlewares/logging.py
"""
Middleware для логирования всех событий бота.
"""

from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject

import structlog

logger = structlog.get_logger()


class LoggingMiddleware(BaseMiddleware):
    """Пишет в лог каждое сообщение и нажатие кнопки."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        if isinstance(event, Message):
            logger.info(
                "bot_message_received",
                chat_id=event.chat.id,
                user_id=event.from_user.id if event.from_user else None,
                is_reply=event.reply_to_message is not None,
                text=event.text[:50] if event.text else None
            )
        elif isinstance(event, CallbackQuery):
            logger.info(
                "bot_callback_received",
                user_id=event.from_user.id,
                callback_data=event.data
            )

        return await handler(event, data)
