# app/bot/services/orders.py
"""
Сервис заказов.

Склеивает всё вместе:
- оформление заказа (заказ + списание остатков в одной транзакции)
- смена статуса (через машину состояний)
- события для подписчиков и уведомления в Telegram

Правило: сначала БД, потом Telegram.
Если Telegram не ответил, заказ всё равно сохранён,
клиент получает "частичный успех" (notified=False).
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.bot.services.events import INSERT, UPDATE, OrderEvent, OrderEventBus, order_snapshot
from app.bot.services.inventory import InventoryAdjuster
from app.bot.services.notifications import Customer, NotificationDispatcher
from app.bot.services.status_machine import ensure_transition
from app.bot.utils.phone import format_phone, validate_phone
from app.errors import ConfigurationError, InvalidTransitionError, UpstreamDeliveryError, ValidationError
from infrastructure.database.models import Order, OrderStatus
from infrastructure.database.repositories import OrderRepository

import structlog

logger = structlog.get_logger()

TOTAL_TOLERANCE = Decimal("0.01")

# Сколько раз перечитываем заказ, если статус поменяли параллельно
STATUS_WRITE_ATTEMPTS = 3


@dataclass
class CheckoutRequest:
    """То что присылает витрина в POST /api/checkout."""

    items: List[dict]
    # [{"id", "name", "price", "quantity"}]
    total: Decimal
    phone_number: str
    customer: Optional[Customer] = None
    # None → гостевой заказ
    timestamp: Optional[datetime] = None


@dataclass
class CheckoutResult:
    order: Order
    notified: bool
    error: Optional[str] = field(default=None)


class OrderService:
    """
    Пример:
        service = OrderService(session, dispatcher, bus)
        result = await service.checkout(request)
        order, changed = await service.change_status(result.order.id, OrderStatus.ACCEPTED)
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: Optional[NotificationDispatcher],
        bus: OrderEventBus
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.bus = bus
        self.orders = OrderRepository(session)
        self.inventory = InventoryAdjuster(session)

    # ==========================================
    # 🛒 ОФОРМЛЕНИЕ ЗАКАЗА
    # ==========================================

    @staticmethod
    def validate(request: CheckoutRequest) -> None:
        """Проверки до любых записей в БД."""
        if not request.items:
            raise ValidationError("Order must contain at least one item", field="items")

        for item in request.items:
            if not item.get("id"):
                raise ValidationError("Every item must reference a product id", field="items")

        total = Decimal(str(request.total))
        if total <= 0:
            raise ValidationError("Order total must be positive", field="total")

        computed = sum(
            (Decimal(str(item.get("price", 0))) * int(item.get("quantity", 0)) for item in request.items),
            Decimal("0")
        )
        if abs(computed - total) > TOTAL_TOLERANCE:
            raise ValidationError(
                f"Order total {total} does not match items sum {computed}",
                field="total",
                expected=str(computed)
            )

        if not validate_phone(request.phone_number):
            raise ValidationError("Invalid phone number", field="phoneNumber")

    async def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        """
        1. Проверяем запрос
        2. В одной транзакции: заказ (телефон в виде +7XXXXXXXXXX) + списание всех позиций
           (не хватило хоть одной → откат всего)
        3. Событие INSERT подписчикам
        4. Карточка в беседу менеджеров
        """
        self.validate(request)

        customer = request.customer
        try:
            order = await self.orders.create(
                items=request.items,
                total_amount=request.total,
                phone_number=format_phone(request.phone_number),
                telegram_user_id=customer.telegram_user_id if customer else None,
                telegram_username=customer.username if customer else None,
                customer_name=(customer.name or None) if customer else None,
                commit=False
            )

            for item in request.items:
                await self.inventory.decrement(str(item["id"]), int(item["quantity"]))

            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        await self.bus.publish(OrderEvent(type=INSERT, new=order_snapshot(order)))

        if self.dispatcher is None:
            logger.warning("staff_notification_skipped", order_id=order.id, reason="bot_not_configured")
            return CheckoutResult(order=order, notified=False, error="Telegram bot is not configured")

        try:
            message = await self.dispatcher.notify_staff_of_new_order(order)
        except (UpstreamDeliveryError, ConfigurationError) as e:
            # Заказ уже сохранён, просто не дошло уведомление
            return CheckoutResult(order=order, notified=False, error=e.message)

        await self.orders.set_staff_message(order.id, message.chat.id, message.message_id)

        return CheckoutResult(order=order, notified=True)

    # ==========================================
    # 🔀 СМЕНА СТАТУСА
    # ==========================================

    async def change_status(
        self,
        order_id: str,
        target: OrderStatus,
        annotate: bool = True
    ) -> Tuple[Order, bool]:
        """
        Сменить статус заказа.

        Возвращает (заказ, changed):
            changed=False: заказ уже был в этом статусе, ничего не делали

        InvalidTransitionError: переход запрещён (completed → pending и т.п.)
        NotFoundError: нет такого заказа

        annotate=False: карточку в беседе перепишет вызывающий
        (кнопка в Telegram сама знает своё сообщение).
        """
        target = OrderStatus(target)

        for _ in range(STATUS_WRITE_ATTEMPTS):
            order = await self.orders.get_or_raise(order_id)
            old = order_snapshot(order)

            if not ensure_transition(order.status, target):
                logger.info("order_status_unchanged", order_id=order_id, status=target.value)
                return order, False

            if await self.orders.update_status_if(order_id, order.status, target):
                break

            logger.info("order_status_race", order_id=order_id, expected=old["status"], target=target.value)
        else:
            raise InvalidTransitionError(
                f"Order {order_id} status keeps changing, try again",
                order_id=order_id,
                target=target.value
            )

        order = await self.orders.get_or_raise(order_id)

        logger.info(
            "order_status_changed",
            order_id=order_id,
            old_status=old["status"],
            new_status=target.value
        )

        await self.bus.publish(OrderEvent(type=UPDATE, new=order_snapshot(order), old=old))

        if self.dispatcher is not None:
            try:
                await self.dispatcher.notify_customer_of_status_change(order, target)
            except UpstreamDeliveryError:
                # Уже залогировано в диспетчере, статус не откатываем
                pass

            if annotate and order.staff_chat_id and order.staff_message_id:
                try:
                    await self.dispatcher.annotate_staff_message(
                        order.staff_chat_id,
                        order.staff_message_id,
                        order
                    )
                except UpstreamDeliveryError:
                    pass

        return order, True
