# app/bot/middlewares/__init__.py
"""
🔄 MIDDLEWARE бота

Порядок подключения (см. main.py::build_dispatcher):
LoggingMiddleware (outer) → DatabaseMiddleware → ThrottlingMiddleware (только личка покупателя)
"""

from .database import DatabaseMiddleware
from .logging import LoggingMiddleware
from .throttling import ThrottlingMiddleware

__all__ = ["DatabaseMiddleware", "LoggingMiddleware", "ThrottlingMiddleware"]
