# infrastructure/database/base.py
"""
🗄️ ПОДКЛЮЧЕНИЕ К БД

Движок SQLAlchemy (async), фабрика сессий и функции
старта/остановки. Postgres через asyncpg в проде,
SQLite (aiosqlite) в тестах.
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

import structlog

from config.settings import config

logger = structlog.get_logger()


# Base: базовый класс для всех моделей
Base = declarative_base()


def _engine_options(url: str) -> dict:
    """Таймауты: запрос к БД не должен висеть вечно."""
    options = {"pool_pre_ping": True}
    if url.startswith("postgresql+asyncpg"):
        options["pool_timeout"] = config.database_timeout
        options["connect_args"] = {
            "timeout": config.database_timeout,
            "command_timeout": config.database_timeout,
        }
    return options


engine = create_async_engine(
    config.async_database_url,
    echo=False,
    **_engine_options(config.async_database_url),
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """
    FastAPI dependency: одна сессия на запрос.

    Пример:
        @router.get("/orders")
        async def list_orders(session: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """Создаём таблицы если их нет."""
    # Импорт нужен чтобы модели зарегистрировались в Base.metadata
    from infrastructure.database import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("database_tables_ready")


async def close_db():
    """Закрываем пул соединений."""
    await engine.dispose()
    logger.info("database_engine_disposed")
