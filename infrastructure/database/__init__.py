# infrastructure/database/__init__.py
"""
🗄️ БАЗА ДАННЫХ

Маршруты FastAPI берут сессию через Depends(get_db_session),
бот: через DatabaseMiddleware (async_session_maker).
"""

from infrastructure.database.base import Base, async_session_maker, close_db, get_db_session, init_db

__all__ = ["Base", "async_session_maker", "close_db", "get_db_session", "init_db"]
