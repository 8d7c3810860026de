# app/api/dependencies.py
"""
Зависимости FastAPI (Depends).

Бот, шина событий и клиент LiveSklad создаются один раз
в create_app() и лежат в app.state. Тут мы их достаём.
"""

import hmac
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.bot.services.events import OrderEventBus
from app.bot.services.notifications import NotificationDispatcher
from app.bot.services.orders import OrderService
from app.errors import ConfigurationError, ForbiddenError
from infrastructure.database import get_db_session
from infrastructure.livesklad import LiveSkladClient


def get_settings(request: Request):
    return request.app.state.settings


def get_notifier(request: Request) -> Optional[NotificationDispatcher]:
    return request.app.state.notifier


def require_notifier(request: Request) -> NotificationDispatcher:
    notifier = request.app.state.notifier
    if notifier is None:
        raise ConfigurationError("Telegram bot is not configured", missing=["bot_token"])
    return notifier


def get_bus(request: Request) -> OrderEventBus:
    return request.app.state.bus


def get_livesklad(request: Request) -> LiveSkladClient:
    return request.app.state.livesklad


def get_order_service(
    session: AsyncSession = Depends(get_db_session),
    notifier: Optional[NotificationDispatcher] = Depends(get_notifier),
    bus: OrderEventBus = Depends(get_bus)
) -> OrderService:
    return OrderService(session, notifier, bus)


def require_admin(
    request: Request,
    x_admin_token: Optional[str] = Header(default=None)
) -> None:
    """
    Админка: заголовок X-Admin-Token должен совпасть с ADMIN_API_TOKEN.
    Токен не настроен → 500, чтобы админка не оказалась открытой.
    """
    expected = request.app.state.settings.admin_api_token
    if not expected:
        raise ConfigurationError("Missing configuration: ADMIN_API_TOKEN", missing=["admin_api_token"])

    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise ForbiddenError("Forbidden")
