# app/bot/services/user_service.py
"""
🔐 ВХОД ПО КОДУ ИЗ TELEGRAM

1. Витрина просит код → send_code(): 6 цифр, живут 5 минут,
   бот присылает их покупателю в личку
2. Покупатель вводит код → verify_code(): проверяем,
   создаём/обновляем профиль telegram_users
"""

import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.bot.services.notifications import NotificationDispatcher
from app.errors import ValidationError
from infrastructure.database.models import TelegramUser
from infrastructure.database.repositories import AuthCodeRepository, TelegramUserRepository

import structlog

logger = structlog.get_logger()


def generate_code() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


class AuthService:
    """Коды подтверждения и профили покупателей."""

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: Optional[NotificationDispatcher],
        ttl_minutes: int = 5
    ):
        self.dispatcher = dispatcher
        self.ttl_minutes = ttl_minutes
        self.codes = AuthCodeRepository(session)
        self.users = TelegramUserRepository(session)

    async def send_code(self, telegram_user_id: str, phone: Optional[str] = None) -> str:
        """
        Новый код заменяет предыдущий.
        Код сохраняется до отправки: если Telegram не ответил,
        покупатель просто запросит ещё раз.
        """
        if not telegram_user_id:
            raise ValidationError("telegramUserId is required", field="telegramUserId")

        code = generate_code()
        expires_at = datetime.utcnow() + timedelta(minutes=self.ttl_minutes)

        await self.codes.upsert(str(telegram_user_id), code, expires_at, phone=phone)

        if self.dispatcher is not None:
            await self.dispatcher.send_auth_code(telegram_user_id, code, self.ttl_minutes)

        logger.info("auth_code_sent", telegram_user_id=str(telegram_user_id))
        return code

    async def verify_code(
        self,
        telegram_user_id: str,
        code: str,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None
    ) -> TelegramUser:
        """
        Ошибки (все ValidationError → 400):
            Code not found / Code expired / Code already used / Invalid code
        """
        auth_code = await self.codes.get(str(telegram_user_id))

        if auth_code is None:
            raise ValidationError("Code not found", telegram_user_id=str(telegram_user_id))

        if auth_code.expires_at < datetime.utcnow():
            logger.info("auth_code_expired", telegram_user_id=str(telegram_user_id))
            raise ValidationError("Code expired", telegram_user_id=str(telegram_user_id))

        if auth_code.verified:
            raise ValidationError("Code already used", telegram_user_id=str(telegram_user_id))

        if not secrets.compare_digest(auth_code.code, str(code or "").strip()):
            logger.info("auth_code_invalid", telegram_user_id=str(telegram_user_id))
            raise ValidationError("Invalid code", telegram_user_id=str(telegram_user_id))

        phone = auth_code.phone
        await self.codes.mark_verified(str(telegram_user_id))

        user = await self.users.upsert_verified(
            str(telegram_user_id),
            phone=phone,
            username=username,
            first_name=first_name,
            last_name=last_name
        )

        logger.info("auth_code_verified", telegram_user_id=str(telegram_user_id))
        return user
