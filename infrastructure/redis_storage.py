# infrastructure/redis_storage.py
"""
🔴 REDIS

Redis используется для двух вещей:
1. FSM storage aiogram (состояния пользователей переживают перезапуск бота)
2. Канал orders:changes: события заказов для других процессов

REDIS_URL пустой → MemoryStorage и события только внутри процесса.
"""

from typing import Optional

from aiogram.fsm.storage.base import BaseStorage
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.fsm.storage.redis import RedisStorage
from redis.asyncio.client import Redis
from redis.exceptions import RedisError

import structlog

logger = structlog.get_logger()


def create_redis(redis_url: str) -> Optional[Redis]:
    if not redis_url:
        return None
    return Redis.from_url(redis_url, encoding="utf-8", decode_responses=True)


def create_fsm_storage(redis: Optional[Redis]) -> BaseStorage:
    """
    Пример:
        storage = create_fsm_storage(create_redis(config.redis_url))
        dp = Dispatcher(storage=storage)
    """
    if redis is None:
        logger.info("fsm_storage_selected", storage="memory")
        return MemoryStorage()

    logger.info("fsm_storage_selected", storage="redis")
    return RedisStorage(redis=redis)


# ==========================================
# ФУНКЦИЯ: проверить соединение
# ==========================================

async def check_redis_connection(redis: Optional[Redis]) -> bool:
    """
    Проверяет что Redis живой и отвечает.
    Вызывается при старте приложения для диагностики.
    """
    if redis is None:
        return False

    try:
        await redis.ping()
        return True
    except RedisError as e:
        logger.error("redis_connection_failed", error=str(e))
        return False


__all__ = [
    "create_redis",
    "create_fsm_storage",
    "check_redis_connection",
]
