# app/bot/utils/__init__.py
"""Инициализация утилит."""

from .phone import format_phone, validate_phone
from .text import escape_html, order_card_text, truncate

__all__ = [
    "format_phone",
    "validate_phone",
    "escape_html",
    "order_card_text",
    "truncate",
]
