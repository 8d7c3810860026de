# app/api/routes/auth.py
"""🔐 Вход в магазин по коду из Telegram."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_settings, require_notifier
from app.api.schemas import SendCodePayload, VerifyCodePayload, profile_to_dict
from app.bot.services.notifications import NotificationDispatcher
from app.bot.services.user_service import AuthService
from infrastructure.database import get_db_session

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/send_code")
async def send_code(
    payload: SendCodePayload,
    session: AsyncSession = Depends(get_db_session),
    notifier: NotificationDispatcher = Depends(require_notifier),
    settings=Depends(get_settings)
):
    service = AuthService(session, notifier, ttl_minutes=settings.auth_code_ttl_minutes)
    await service.send_code(payload.telegram_user_id, phone=payload.phone)
    return {"success": True, "message": "Code sent"}


@router.post("/verify_code")
async def verify_code(
    payload: VerifyCodePayload,
    session: AsyncSession = Depends(get_db_session),
    settings=Depends(get_settings)
):
    service = AuthService(session, None, ttl_minutes=settings.auth_code_ttl_minutes)
    user = await service.verify_code(
        payload.telegram_user_id,
        payload.code,
        username=payload.username,
        first_name=payload.first_name,
        last_name=payload.last_name
    )
    return {"success": True, "profile": profile_to_dict(user)}
