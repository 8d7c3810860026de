# infrastructure/database/models.py
"""
Здесь мы описываем структуру таблиц в базе данных.
SQLAlchemy автоматически создаст эти таблицы при первом запуске.

Каждый класс = одна таблица в БД
Каждое поле класса = один столбец в таблице
"""

import uuid

from sqlalchemy import (
    BigInteger,    # Большие целые числа (для Telegram message_id / chat_id)
    Integer,       # Целые числа
    String,        # Текст фиксированной длины
    Text,          # Текст любой длины
    DateTime,      # Дата и время
    ForeignKey,    # Связь с другой таблицей
    Enum,          # Перечисление (выбор из нескольких вариантов)
    Boolean,       # Логическое значение (true/false)
    Numeric,       # Деньги (без ошибок округления float)
    JSON,          # JSON данные (для массивов, объектов)
    CheckConstraint,
    Column         # Определение столбца
)

from sqlalchemy.orm import relationship

from datetime import datetime

from enum import Enum as PyEnum

from infrastructure.database.base import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


# ==========================================
# ENUMS (Перечисления)
# ==========================================

class OrderStatus(str, PyEnum):
    """
    Статусы заказа.

    pending → accepted → ready → completed
    + cancelled из любого не конечного статуса.
    Правила переходов живут в app/bot/services/status_machine.py
    """
    PENDING = "pending"
    # Только что оформлен в магазине
    ACCEPTED = "accepted"
    # Менеджер принял в работу
    READY = "ready"
    # Готов к выдаче
    COMPLETED = "completed"
    # Выдан клиенту
    CANCELLED = "cancelled"
    # Отменён


# ==========================================
# МОДЕЛЬ: Product (Таблица products)
# ==========================================

class Product(Base):
    """
    Товар на складе.

    quantity: остаток. Никогда не бывает отрицательным
    (CHECK в БД + условный UPDATE в InventoryAdjuster).
    is_visible: показывать ли товар в магазине.
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)

    external_id = Column(
        String,
        nullable=True,
        unique=True,
        index=True
    )
    # ID товара в LiveSklad (для синхронизации)

    name = Column(String, nullable=False, index=True)
    code = Column(String, nullable=True)
    article = Column(String, nullable=True)
    category_name = Column(String, nullable=True, index=True)
    category_path = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    photo_url = Column(String, nullable=True)
    unit = Column(String, nullable=True)
    country = Column(String, nullable=True)

    quantity = Column(Integer, nullable=False, default=0)
    min_quantity = Column(Integer, nullable=True, default=0)
    # Неснижаемый остаток (для подсветки "мало на складе")

    retail_price = Column(Numeric(12, 2), nullable=True)
    purchase_price = Column(Numeric(12, 2), nullable=True)

    warranty_days = Column(Integer, nullable=True)
    warranty_months = Column(Integer, nullable=True)

    is_visible = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', qty={self.quantity})>"


# ==========================================
# МОДЕЛЬ: Order (Таблица orders)
# ==========================================

class Order(Base):
    """
    Таблица заказов.

    items: снимок корзины на момент заказа (не ссылка на товар!):
    [
      {"id": "p1", "name": "Экран", "price": 1000, "quantity": 2}
    ]
    total_amount = сумма price * quantity, больше не пересчитывается.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_uuid)

    items = Column(JSON, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    phone_number = Column(String, nullable=False, index=True)

    # ==========================================
    # Клиент из Telegram (у гостевых заказов пусто)
    # ==========================================
    telegram_user_id = Column(String, nullable=True, index=True)
    telegram_username = Column(String, nullable=True, index=True)
    customer_name = Column(String, nullable=True)

    status = Column(
        Enum(
            OrderStatus,
            name="order_status",
            values_callable=lambda statuses: [s.value for s in statuses]
        ),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True  # ← INDEX (часто фильтруем по статусу)
    )

    # ==========================================
    # Куда ушло уведомление менеджерам
    # ==========================================
    staff_chat_id = Column(BigInteger, nullable=True)
    staff_message_id = Column(BigInteger, nullable=True)
    # Нужно чтобы переписать строку "⚡ Статус" при смене из админки

    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        index=True  # ← INDEX (часто сортируем по дате)
    )
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    messages = relationship("ChatMessage", back_populates="order")

    @property
    def short_id(self) -> str:
        """Первые 8 символов UUID: так номер показываем людям."""
        return self.id[:8]

    @property
    def is_guest(self) -> bool:
        return not self.telegram_user_id

    def __repr__(self):
        return f"<Order(id={self.id}, status={self.status}, total={self.total_amount})>"


# ==========================================
# МОДЕЛЬ: ChatMessage (Таблица chat_messages)
# ==========================================

class ChatMessage(Base):
    """
    История переписки клиента с менеджерами.
    Только добавляем, никогда не меняем.
    """
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=new_uuid)

    telegram_user_id = Column(String, nullable=False, index=True)
    # С каким клиентом переписка

    order_id = Column(
        String(36),
        ForeignKey("orders.id"),
        nullable=True,
        index=True
    )
    # К какому заказу относится (если относится)

    message = Column(Text, nullable=False)

    is_from_manager = Column(Boolean, nullable=False, default=False)
    # True = менеджер → клиенту, False = клиент → менеджерам

    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        index=True  # ← INDEX (сортируем по времени)
    )

    order = relationship("Order", back_populates="messages")


# ==========================================
# МОДЕЛЬ: TelegramAuthCode (Таблица telegram_auth_codes)
# ==========================================

class TelegramAuthCode(Base):
    """
    Одноразовый код входа (6 цифр, живёт 5 минут).
    На одного пользователя Telegram: ровно один актуальный код.
    """
    __tablename__ = "telegram_auth_codes"

    id = Column(String(36), primary_key=True, default=new_uuid)
    telegram_user_id = Column(String, nullable=False, unique=True, index=True)
    code = Column(String(6), nullable=False)
    phone = Column(String, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)


# ==========================================
# МОДЕЛЬ: TelegramUser (Таблица telegram_users)
# ==========================================

class TelegramUser(Base):
    """Профиль покупателя, подтвердившего вход кодом."""
    __tablename__ = "telegram_users"

    id = Column(String(36), primary_key=True, default=new_uuid)
    telegram_user_id = Column(String, nullable=False, unique=True, index=True)
    username = Column(String, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    verified = Column(Boolean, nullable=False, default=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# ==========================================
# МОДЕЛИ: прайс на услуги ремонта
# ==========================================

class ServiceCategory(Base):
    """Раздел прайса: "Замена экрана", "Диагностика"..."""
    __tablename__ = "service_categories"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String, nullable=False, unique=True)
    icon = Column(String, nullable=True)
    # Имя иконки на витрине (например "smartphone")
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    services = relationship(
        "Service",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="Service.created_at"
    )


class Service(Base):
    """
    Строка прайса.

    price: строка, а не число: в прайсе пишут "от 1500 ₽" или "договорная".
    """
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=new_uuid)
    category_id = Column(String(36), ForeignKey("service_categories.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    price = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    category = relationship("ServiceCategory", back_populates="services")


# ==========================================
# МОДЕЛЬ: ShopSetting (Таблица settings)
# ==========================================

class ShopSetting(Base):
    """Настройки витрины ключ → значение (их правят в админке)."""
    __tablename__ = "settings"

    id = Column(String(36), primary_key=True, default=new_uuid)
    key = Column(String, nullable=False, unique=True, index=True)
    value = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
