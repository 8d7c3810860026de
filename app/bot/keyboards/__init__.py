# app/bot/keyboards/__init__.py
"""Инициализация клавиатур."""

from .client import shop_keyboard
from .operator import new_order_keyboard, order_actions_keyboard

__all__ = ["shop_keyboard", "new_order_keyboard", "order_actions_keyboard"]
