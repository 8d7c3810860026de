# app/bot/handlers/__init__.py
"""
🤖 BOT HANDLERS (обработчики команд)

Порядок важен: common (/help) → staff (кнопки и ответы в беседе)
→ client (личка, там перехватывается любой текст).
"""

from aiogram import Router

from .client import router as client_router
from .common import router as common_router
from .operator import router as staff_router


def build_main_router() -> Router:
    main_router = Router(name="main")
    main_router.include_router(common_router)
    main_router.include_router(staff_router)
    main_router.include_router(client_router)
    return main_router


__all__ = ["build_main_router", "client_router", "common_router", "staff_router"]
