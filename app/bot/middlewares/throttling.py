# app/bot/middlewares/throttling.py
"""
Middleware для защиты от спама (throttling).

Покупатель пишет боту → каждое сообщение улетает в беседу менеджеров.
Чтобы беседу не завалили, ограничиваем частоту:
по умолчанию не больше 10 сообщений за 5 секунд от одного человека.
"""

import time
from collections import defaultdict, deque
from typing import Any, Awaitable, Callable, Deque, Dict

from aiogram import BaseMiddleware
from aiogram.types import Message, TelegramObject

import structlog

logger = structlog.get_logger()


class ThrottlingMiddleware(BaseMiddleware):
    """
    Пример:
        router.message.middleware(ThrottlingMiddleware(max_requests=10, time_window=5))
    """

    def __init__(self, max_requests: int = 10, time_window: float = 5.0):
        self.max_requests = max_requests
        self.time_window = time_window
        self.user_requests: Dict[int, Deque[float]] = defaultdict(deque)
        # {user_id: времена последних сообщений}

    def hit(self, user_id: int) -> bool:
        """Записать запрос. False: лимит превышен."""
        now = time.monotonic()
        requests = self.user_requests[user_id]

        while requests and now - requests[0] >= self.time_window:
            requests.popleft()

        if len(requests) >= self.max_requests:
            return False

        requests.append(now)
        return True

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        if not isinstance(event, Message) or event.from_user is None:
            return await handler(event, data)

        if not self.hit(event.from_user.id):
            logger.warning("throttling_limit_exceeded", user_id=event.from_user.id)
            await event.answer("⏱️ Вы пишете слишком часто. Подождите немного!")
            return None

        return await handler(event, data)
