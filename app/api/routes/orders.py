# app/api/routes/orders.py
"""
📦 Заказы для покупателя.

- GET /api/orders/mine: мои заказы
- GET /api/orders/events: живые обновления (Server-Sent Events)
- GET /api/orders/lookup/{number}: статус ремонта в LiveSklad
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_bus, get_livesklad
from app.bot.services.events import OrderEventBus, event_stream, order_snapshot
from app.bot.services.status_machine import customer_label
from infrastructure.database import get_db_session
from infrastructure.database.repositories import OrderRepository
from infrastructure.livesklad import LiveSkladClient

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.get("/mine")
async def my_orders(telegram_user_id: str, session: AsyncSession = Depends(get_db_session)):
    orders = await OrderRepository(session).get_user_orders(telegram_user_id)
    return {
        "orders": [
            {**order_snapshot(order), "statusLabel": customer_label(order.status)}
            for order in orders
        ]
    }


@router.get("/events")
async def order_events(telegram_user_id: Optional[str] = None, bus: OrderEventBus = Depends(get_bus)):
    """
    Поток событий. Пример в браузере:
        new EventSource("/api/orders/events?telegram_user_id=123")
    """
    return StreamingResponse(
        event_stream(bus, telegram_user_id=telegram_user_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
    )


@router.get("/lookup/{number}")
async def lookup_repair_order(number: str, livesklad: LiveSkladClient = Depends(get_livesklad)):
    return {"number": number, "status": await livesklad.find_order_status(number)}
