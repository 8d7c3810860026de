# app/bot/middlewares/database.py
"""
Middleware для подачи БД сессии в каждый обработчик.

Middleware выполняется ДО обработчика для всех сообщений/callback'ов.

Логика:
1. Создаем сессию
2. Передаем её обработчику (аргумент session)
3. Ошибка → rollback, после обработчика закрываем сессию
"""

from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject
from sqlalchemy.ext.asyncio import async_sessionmaker

import structlog

logger = structlog.get_logger()


class DatabaseMiddleware(BaseMiddleware):
    """Middleware который подает AsyncSession в контекст."""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        async with self.session_maker() as session:
            data["session"] = session
            try:
                return await handler(event, data)
            except Exception as e:
                await session.rollback()
                logger.error("bot_handler_database_error", error=str(e), error_type=type(e).__name__)
                raise
