# app/bot/keyboards/client.py
"""
Клавиатура для покупателей.

Магазин живёт в Telegram Mini App, поэтому бот показывает
одну inline-кнопку, которая открывает витрину (WebAppInfo).
"""

from typing import Optional

from aiogram.types import (
    InlineKeyboardMarkup,
    # Кнопки прямо в сообщении
    InlineKeyboardButton,
    # Одна inline-кнопка
    WebAppInfo
    # Ссылка на Mini App
)


def shop_keyboard(webapp_url: Optional[str]) -> Optional[InlineKeyboardMarkup]:
    """
    Кнопка "🛍 Открыть магазин".

    Если адрес витрины не настроен, клавиатуры нет (None),
    бот просто ответит текстом.
    """
    if not webapp_url:
        return None

    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(
            text="🛍 Открыть магазин",
            web_app=WebAppInfo(url=webapp_url)
        )
    ]])
