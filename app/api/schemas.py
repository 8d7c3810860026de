# app/api/schemas.py
"""
Pydantic модели запросов к API.

Витрина (React) шлёт поля в camelCase (phoneNumber, telegramUserId),
поэтому у полей есть alias. Внутри Python: snake_case.
"""

import base64
import binascii
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.bot.utils.phone import validate_phone
from infrastructure.database.models import OrderStatus

MAX_IMAGE_BYTES = 10 * 1024 * 1024


class CamelModel(BaseModel):
    # Можно и phoneNumber, и phone_number
    model_config = ConfigDict(populate_by_name=True)


class TelegramUserPayload(CamelModel):
    """Всё, что приходит от витрины с telegramUserId (число или строка)."""
    telegram_user_id: str = Field(alias="telegramUserId")

    @field_validator("telegram_user_id", mode="before")
    @classmethod
    def user_id_to_str(cls, value: Union[int, str]) -> str:
        value = str(value).strip()
        if not value:
            raise ValueError("must not be empty")
        return value


# ==========================================
# 🛒 ОФОРМЛЕНИЕ ЗАКАЗА
# ==========================================

class CheckoutUser(CamelModel):
    """Пользователь Telegram из initData Mini App."""
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None


class CheckoutItem(CamelModel):
    id: str
    name: str
    price: float
    quantity: int


class CheckoutPayload(CamelModel):
    user: Optional[CheckoutUser] = None
    phone_number: str = Field(alias="phoneNumber")
    items: List[CheckoutItem]
    total: Decimal
    timestamp: Optional[datetime] = None


# ==========================================
# 🔐 КОД ВХОДА
# ==========================================

class SendCodePayload(TelegramUserPayload):
    phone: Optional[str] = None


class VerifyCodePayload(TelegramUserPayload):
    code: str
    username: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")


# ==========================================
# 💬 ЧАТ
# ==========================================

class ChatSendPayload(TelegramUserPayload):
    telegram_username: Optional[str] = Field(default=None, alias="telegramUsername")
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    message: str = Field(min_length=1, max_length=4000)
    order_id: Optional[str] = Field(default=None, alias="orderId")


class ChatHistoryPayload(TelegramUserPayload):
    order_id: Optional[str] = Field(default=None, alias="orderId")


# ==========================================
# 🔔 ФОРМА "СВЯЗАТЬСЯ С НАМИ"
# ==========================================

class ContactPayload(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    phone: str
    message: str = Field(min_length=1, max_length=1000)
    image_base64: Optional[str] = Field(default=None, alias="imageBase64")

    @field_validator("name", "message")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: str) -> str:
        if not validate_phone(value):
            raise ValueError("invalid phone number")
        return value.strip()

    def image_bytes(self) -> Optional[bytes]:
        """
        base64 (можно с префиксом data:image/...;base64,) → bytes.
        Больше 10 МБ или мусор → ValueError.
        """
        if not self.image_base64:
            return None

        data = self.image_base64
        if data.startswith("data:") and "," in data:
            data = data.split(",", 1)[1]

        try:
            image = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("imageBase64 is not valid base64")

        if len(image) > MAX_IMAGE_BYTES:
            raise ValueError("image is larger than 10MB")

        return image


# ==========================================
# 🛠 АДМИНКА
# ==========================================

class StatusPayload(CamelModel):
    status: OrderStatus


class AdjustPayload(CamelModel):
    delta: int


class QuantityPayload(CamelModel):
    quantity: int = Field(ge=0)


class VisibilityPayload(CamelModel):
    is_visible: bool = Field(alias="isVisible")


class ServiceCategoryPayload(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    icon: Optional[str] = None


class ServiceCategoryUpdatePayload(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    icon: Optional[str] = None


class ServicePayload(CamelModel):
    category_id: str = Field(alias="categoryId")
    name: str = Field(min_length=1, max_length=200)
    price: str = Field(min_length=1, max_length=50)
    # "от 1500 ₽", "договорная"


class ServiceUpdatePayload(CamelModel):
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    price: Optional[str] = Field(default=None, min_length=1, max_length=50)


class SettingPayload(CamelModel):
    value: str


# ==========================================
# ОТВЕТЫ (модель БД → dict)
# ==========================================

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _money(value) -> Optional[float]:
    return float(value) if value is not None else None


def product_to_dict(product) -> dict:
    return {
        "id": product.id,
        "externalId": product.external_id,
        "name": product.name,
        "code": product.code,
        "article": product.article,
        "categoryName": product.category_name,
        "categoryPath": product.category_path,
        "description": product.description,
        "photoUrl": product.photo_url,
        "unit": product.unit,
        "country": product.country,
        "quantity": product.quantity,
        "minQuantity": product.min_quantity,
        "retailPrice": _money(product.retail_price),
        "purchasePrice": _money(product.purchase_price),
        "warrantyDays": product.warranty_days,
        "warrantyMonths": product.warranty_months,
        "isVisible": product.is_visible,
        "updatedAt": _iso(product.updated_at),
    }


def message_to_dict(message) -> dict:
    return {
        "id": message.id,
        "telegramUserId": message.telegram_user_id,
        "orderId": message.order_id,
        "message": message.message,
        "isFromManager": message.is_from_manager,
        "createdAt": _iso(message.created_at),
    }


def profile_to_dict(user) -> dict:
    return {
        "telegramUserId": user.telegram_user_id,
        "username": user.username,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "phone": user.phone,
        "verified": user.verified,
        "lastLogin": _iso(user.last_login),
    }


def service_to_dict(service) -> dict:
    return {
        "id": service.id,
        "categoryId": service.category_id,
        "name": service.name,
        "price": service.price,
    }


def category_to_dict(category, services=None) -> dict:
    """services=None: без вложенного списка (после create/update)."""
    data = {"id": category.id, "name": category.name, "icon": category.icon}
    if services is not None:
        data["services"] = [service_to_dict(service) for service in services]
    return data
