# app/bot/services/notifications.py
"""
📨 УВЕДОМЛЕНИЯ В TELEGRAM

Единственное место, откуда бот что-то отправляет:
- карточка нового заказа в беседу менеджеров
- статус заказа покупателю
- переписка клиент ⇄ менеджеры
- код входа, заявки с сайта

Каждый вызов Telegram ограничен по времени (config.telegram_timeout).
Ошибка Telegram / таймаут → UpstreamDeliveryError.
То, что уже записано в БД, при этом НЕ откатываем.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Union

from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.types import BufferedInputFile, Message

from app.bot.keyboards.operator import new_order_keyboard, order_actions_keyboard
from app.bot.utils import text as texts
from app.errors import ConfigurationError, UpstreamDeliveryError
from infrastructure.database.models import ChatMessage, Order, OrderStatus
from infrastructure.database.repositories import MessageRepository

import structlog

logger = structlog.get_logger()


@dataclass
class Customer:
    """Покупатель в Telegram (то что присылает Mini App или aiogram)."""

    telegram_user_id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def name(self) -> str:
        return texts.full_name(self.first_name, self.last_name)

    @classmethod
    def from_user(cls, user) -> "Customer":
        """aiogram.types.User → Customer"""
        return cls(
            telegram_user_id=str(user.id),
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
        )


class NotificationDispatcher:
    """
    Пример:
        dispatcher = NotificationDispatcher(bot, staff_chat_id=-100123)
        message = await dispatcher.notify_staff_of_new_order(order)
    """

    def __init__(
        self,
        bot: Bot,
        staff_chat_id: Optional[int],
        contact_channel_id: Optional[int] = None,
        timeout: float = 10.0
    ):
        self.bot = bot
        self.staff_chat_id = staff_chat_id
        self.contact_channel_id = contact_channel_id
        self.timeout = timeout

    # ==========================================
    # ВНУТРЕННЕЕ: вызов Telegram с таймаутом
    # ==========================================

    async def _call(self, coro, event: str, **context):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except (TelegramAPIError, asyncio.TimeoutError) as e:
            logger.error(event, error=str(e) or type(e).__name__, error_type=type(e).__name__, **context)
            raise UpstreamDeliveryError(f"Telegram delivery failed: {e or type(e).__name__}", **context) from e

    def _staff_chat(self) -> int:
        if self.staff_chat_id is None:
            raise ConfigurationError("Missing configuration: STAFF_CHAT_ID", missing=["staff_chat_id"])
        return self.staff_chat_id

    # ==========================================
    # 🛒 ЗАКАЗЫ
    # ==========================================

    async def notify_staff_of_new_order(self, order: Order) -> Message:
        """Карточка заказа + 4 кнопки в беседу менеджеров."""
        chat_id = self._staff_chat()

        message = await self._call(
            self.bot.send_message(
                chat_id=chat_id,
                text=texts.order_card_text(order),
                parse_mode=ParseMode.HTML,
                reply_markup=new_order_keyboard(order.id)
            ),
            "staff_notification_failed",
            order_id=order.id
        )

        logger.info("staff_notified", order_id=order.id, message_id=message.message_id)
        return message

    async def notify_customer_of_status_change(self, order: Order, new_status: OrderStatus) -> bool:
        """
        Сообщение покупателю о новом статусе.
        У гостевого заказа писать некому → False.
        """
        if order.is_guest:
            logger.info("customer_notification_skipped_guest", order_id=order.id)
            return False

        await self._call(
            self.bot.send_message(
                chat_id=int(order.telegram_user_id),
                text=texts.customer_status_text(order, new_status)
            ),
            "customer_notification_failed",
            order_id=order.id,
            telegram_user_id=order.telegram_user_id
        )

        logger.info("customer_notified", order_id=order.id, status=OrderStatus(new_status).value)
        return True

    async def annotate_staff_message(self, chat_id: int, message_id: int, order: Order) -> None:
        """
        Переписать карточку: новая строка "⚡ Статус" и
        кнопки только для разрешённых дальше действий.
        """
        await self._call(
            self.bot.edit_message_text(
                chat_id=chat_id,
                message_id=message_id,
                text=texts.order_card_text(order),
                parse_mode=ParseMode.HTML,
                reply_markup=order_actions_keyboard(order.id, order.status)
            ),
            "staff_message_edit_failed",
            order_id=order.id,
            message_id=message_id
        )

    async def answer_action(self, callback_id: str, text: str, show_alert: bool = False) -> None:
        """Всплывашка после нажатия кнопки (убирает "часики")."""
        await self._call(
            self.bot.answer_callback_query(
                callback_query_id=callback_id,
                text=text,
                show_alert=show_alert
            ),
            "callback_answer_failed",
            callback_id=callback_id
        )

    # ==========================================
    # 💬 ЧАТ
    # ==========================================

    async def relay_chat_message(
        self,
        messages: MessageRepository,
        from_customer: bool,
        text: str,
        customer: Customer,
        order_id: Optional[str] = None
    ) -> ChatMessage:
        """
        Сначала сохраняем сообщение в историю, потом пересылаем:
        - от клиента → в беседу менеджеров (с 🆔 для ответа)
        - от менеджера → клиенту в личку
        """
        saved = await messages.save(
            telegram_user_id=customer.telegram_user_id,
            message=text,
            is_from_manager=not from_customer,
            order_id=order_id
        )

        if from_customer:
            await self._call(
                self.bot.send_message(
                    chat_id=self._staff_chat(),
                    text=texts.customer_message_text(
                        text,
                        customer.name,
                        customer.username,
                        customer.telegram_user_id,
                        order_id
                    ),
                    parse_mode=ParseMode.HTML
                ),
                "chat_relay_failed",
                telegram_user_id=customer.telegram_user_id,
                direction="to_staff"
            )
        else:
            await self._call(
                self.bot.send_message(
                    chat_id=int(customer.telegram_user_id),
                    text=texts.manager_reply_text(text)
                ),
                "chat_relay_failed",
                telegram_user_id=customer.telegram_user_id,
                direction="to_customer"
            )

        logger.info(
            "chat_message_relayed",
            telegram_user_id=customer.telegram_user_id,
            from_customer=from_customer,
            order_id=order_id
        )
        return saved

    # ==========================================
    # 🔐 КОД ВХОДА
    # ==========================================

    async def send_auth_code(self, telegram_user_id: Union[str, int], code: str, ttl_minutes: int = 5) -> None:
        await self._call(
            self.bot.send_message(
                chat_id=int(telegram_user_id),
                text=texts.auth_code_text(code, ttl_minutes)
            ),
            "auth_code_delivery_failed",
            telegram_user_id=str(telegram_user_id)
        )

    # ==========================================
    # 🔔 ЗАЯВКА С САЙТА
    # ==========================================

    async def relay_contact_request(
        self,
        name: str,
        phone: str,
        message: str,
        image: Optional[bytes] = None
    ) -> bool:
        """
        Заявка из формы "Связаться с нами".

        С картинкой пробуем фото с подписью,
        не вышло → отправляем только текст.

        Возвращает True если ушло фото.
        """
        chat_id = self.contact_channel_id if self.contact_channel_id is not None else self._staff_chat()
        text = texts.contact_request_text(name, phone, message)

        if image:
            try:
                await self._call(
                    self.bot.send_photo(
                        chat_id=chat_id,
                        photo=BufferedInputFile(image, filename="photo.jpg"),
                        caption=texts.contact_request_text(name, phone, message, limit=texts.CAPTION_LIMIT),
                        parse_mode=ParseMode.HTML
                    ),
                    "contact_photo_failed",
                    chat_id=chat_id
                )
                logger.info("contact_request_sent", photo=True)
                return True
            except UpstreamDeliveryError:
                logger.warning("contact_photo_fallback_to_text", chat_id=chat_id)

        await self._call(
            self.bot.send_message(chat_id=chat_id, text=text, parse_mode=ParseMode.HTML),
            "contact_request_failed",
            chat_id=chat_id
        )
        logger.info("contact_request_sent", photo=False)
        return False
