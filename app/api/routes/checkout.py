# app/api/routes/checkout.py
"""
🛒 POST /api/checkout: оформление заказа из корзины.

Ответ:
    {"success": true, "orderId": "...", "notified": true}

notified=false: заказ сохранён, но карточка не дошла до менеджеров
(в поле warning причина). Клиенту всё равно показываем успех.
"""

from fastapi import APIRouter, Depends

from app.api.dependencies import get_order_service
from app.api.schemas import CheckoutPayload
from app.bot.services.notifications import Customer
from app.bot.services.orders import CheckoutRequest, OrderService

router = APIRouter(prefix="/api", tags=["checkout"])


@router.post("/checkout")
async def checkout(payload: CheckoutPayload, service: OrderService = Depends(get_order_service)):
    customer = None
    if payload.user is not None:
        customer = Customer(
            telegram_user_id=str(payload.user.id),
            username=payload.user.username,
            first_name=payload.user.first_name,
            last_name=payload.user.last_name,
        )

    result = await service.checkout(CheckoutRequest(
        items=[item.model_dump() for item in payload.items],
        total=payload.total,
        phone_number=payload.phone_number,
        customer=customer,
        timestamp=payload.timestamp,
    ))

    body = {"success": True, "orderId": result.order.id, "notified": result.notified}
    if result.error:
        body["warning"] = result.error
    return body
