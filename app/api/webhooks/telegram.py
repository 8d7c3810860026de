# app/api/webhooks/telegram.py
"""
Вебхук Telegram.

В режиме TELEGRAM_MODE=webhook Telegram присылает каждое событие
POST запросом сюда.

Логика:
1. ✅ Проверяем секрет (X-Telegram-Bot-Api-Secret-Token)
2. Нажатие кнопки под заказом → handle_order_action()
3. Ответ менеджера в беседе → handle_staff_reply()
4. Остальное (личка покупателя, /start) → роутеры aiogram

Telegram всегда получает 200: иначе он будет повторять
одно и то же событие снова и снова.
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import ForbiddenError
from app.bot.services.callbacks import ActionCallback, StaffReply, handle_order_action, handle_staff_reply
from app.bot.services.orders import OrderService
from infrastructure.database import get_db_session
from infrastructure.database.repositories import MessageRepository

import structlog

logger = structlog.get_logger()

router = APIRouter(prefix="/api/telegram", tags=["telegram"])


def _verify_secret(expected: Optional[str], provided: Optional[str]) -> None:
    if not expected:
        return

    # TIMING-SAFE сравнение
    if not hmac.compare_digest(provided or "", expected):
        logger.warning("invalid_webhook_secret")
        raise ForbiddenError("Invalid secret token")


@router.post("/webhook")
async def telegram_webhook(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    x_telegram_bot_api_secret_token: Optional[str] = Header(default=None)
):
    state = request.app.state
    _verify_secret(state.settings.telegram_webhook_secret, x_telegram_bot_api_secret_token)

    try:
        update = await request.json()
    except ValueError:
        logger.warning("telegram_webhook_invalid_json")
        return {"ok": False, "error": "Invalid JSON"}

    notifier = state.notifier
    if notifier is None:
        logger.error("telegram_webhook_without_bot", update_id=update.get("update_id"))
        return {"ok": False, "error": "Telegram bot is not configured"}

    try:
        callback = ActionCallback.from_update(update)
        if callback is not None:
            service = OrderService(session, notifier, state.bus)
            return await handle_order_action(callback, service, notifier)

        reply = StaffReply.from_update(update)
        if reply is not None and reply.chat_id == notifier.staff_chat_id:
            delivered = await handle_staff_reply(reply, MessageRepository(session), notifier)
            return {"ok": True, "delivered": delivered}

        if state.telegram_dispatcher is not None and state.bot is not None:
            await state.telegram_dispatcher.feed_raw_update(state.bot, update)

        return {"ok": True}

    except Exception as e:
        await session.rollback()
        logger.error(
            "telegram_webhook_failed",
            update_id=update.get("update_id"),
            error=str(e),
            error_type=type(e).__name__
        )
        return {"ok": False, "error": str(e)}
