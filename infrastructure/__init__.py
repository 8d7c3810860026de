# infrastructure/__init__.py
"""
Инфраструктура магазина: БД, Redis, LiveSklad, логи.

Бизнес-логика (заказы, статусы, уведомления) живёт в app/bot/services.
"""

from .logger import setup_logging
from .redis_storage import check_redis_connection, create_fsm_storage, create_redis

__all__ = [
    "setup_logging",
    "check_redis_connection",
    "create_fsm_storage",
    "create_redis",
]
