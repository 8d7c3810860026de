# app/api/routes/chat.py
"""
💬 Чат покупателя с менеджерами из Mini App.

send_message: сохранить и переслать в беседу менеджеров
get_messages: история (старые сверху)
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import require_notifier
from app.api.schemas import ChatHistoryPayload, ChatSendPayload, message_to_dict
from app.bot.services.notifications import Customer, NotificationDispatcher
from infrastructure.database import get_db_session
from infrastructure.database.repositories import MessageRepository

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("/send_message")
async def send_message(
    payload: ChatSendPayload,
    session: AsyncSession = Depends(get_db_session),
    notifier: NotificationDispatcher = Depends(require_notifier)
):
    customer = Customer(
        telegram_user_id=payload.telegram_user_id,
        username=payload.telegram_username,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    saved = await notifier.relay_chat_message(
        MessageRepository(session),
        from_customer=True,
        text=payload.message,
        customer=customer,
        order_id=payload.order_id
    )
    return {"success": True, "message": message_to_dict(saved)}


@router.post("/get_messages")
async def get_messages(payload: ChatHistoryPayload, session: AsyncSession = Depends(get_db_session)):
    messages = await MessageRepository(session).get_history(payload.telegram_user_id, payload.order_id)
    return {"messages": [message_to_dict(message) for message in messages]}
