# infrastructure/livesklad.py
"""
🏬 LIVESKLAD API

LiveSklad: складская программа сервиса.
Оттуда берём:
- товары (синхронизация каталога, POST /api/admin/products/sync)
- статус ремонта по номеру заказа (GET /api/orders/lookup/{number})

Авторизация: POST /auth {login, password} → {token},
дальше токен в заголовке Authorization (без "Bearer").
"""

from decimal import Decimal, InvalidOperation
from typing import List, Optional

import httpx

from app.errors import ConfigurationError, UpstreamDeliveryError

import structlog

logger = structlog.get_logger()

ORDER_NOT_FOUND = "Заказ не найден"


def _decimal(value) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _int(value, default: Optional[int] = None) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def map_product(raw: dict) -> dict:
    """
    Товар LiveSklad → поля таблицы products.

    У LiveSklad поля называются по-разному в разных версиях API,
    поэтому берём первое, что нашлось.
    """
    category = raw.get("category") or {}
    if isinstance(category, str):
        category = {"name": category}

    photo = raw.get("image") or raw.get("photo")
    if isinstance(raw.get("images"), list) and raw["images"]:
        photo = photo or raw["images"][0]

    return {
        "external_id": str(raw.get("id")),
        "name": raw.get("name") or "Без названия",
        "code": raw.get("code"),
        "article": raw.get("article"),
        "category_name": category.get("name"),
        "category_path": category.get("path"),
        "description": raw.get("description"),
        "photo_url": photo,
        "unit": raw.get("unit"),
        "country": raw.get("country"),
        "quantity": max(_int(raw.get("quantity", raw.get("count")), 0), 0),
        "min_quantity": _int(raw.get("minQuantity"), 0),
        "retail_price": _decimal(raw.get("price", raw.get("retailPrice"))),
        "purchase_price": _decimal(raw.get("purchasePrice")),
        "warranty_days": _int(raw.get("warrantyDays")),
        "warranty_months": _int(raw.get("warrantyMonths")),
    }


class LiveSkladClient:
    """
    Пример:
        client = LiveSkladClient(config.livesklad_base_url, login, password)
        rows = await client.fetch_products()
        status = await client.find_order_status("1024")
    """

    def __init__(
        self,
        base_url: str,
        login: Optional[str],
        password: Optional[str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.login = login
        self.password = password
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def _authenticate(self, client: httpx.AsyncClient) -> str:
        if not self.login or not self.password:
            raise ConfigurationError(
                "Missing configuration: LIVESKLAD_LOGIN, LIVESKLAD_PASSWORD",
                missing=["livesklad_login", "livesklad_password"]
            )

        response = await client.post("/auth", json={"login": self.login, "password": self.password})
        response.raise_for_status()

        token = response.json().get("token")
        if not token:
            raise UpstreamDeliveryError("LiveSklad did not return a token")
        return token

    async def fetch_products(self) -> List[dict]:
        """Все товары склада, уже в формате таблицы products."""
        try:
            async with self._client() as client:
                token = await self._authenticate(client)
                response = await client.get("/company/goods", headers={"Authorization": token})
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.error("livesklad_request_failed", operation="goods", error=str(e))
            raise UpstreamDeliveryError(f"LiveSklad request failed: {e}") from e

        raw_products = payload.get("data", []) if isinstance(payload, dict) else payload
        products = [map_product(raw) for raw in raw_products if raw.get("id") is not None]

        logger.info("livesklad_products_fetched", count=len(products))
        return products

    async def find_order_status(self, number: str) -> str:
        """
        Статус ремонта по номеру квитанции.
        Нет такого номера → "Заказ не найден".
        """
        try:
            async with self._client() as client:
                token = await self._authenticate(client)
                response = await client.get(
                    "/company/orders",
                    params={"number": number},
                    headers={"Authorization": token}
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.error("livesklad_request_failed", operation="orders", number=number, error=str(e))
            raise UpstreamDeliveryError(f"LiveSklad request failed: {e}") from e

        orders = payload.get("data", []) if isinstance(payload, dict) else payload
        for order in orders:
            if str(order.get("number")) == str(number):
                return order.get("name") or order.get("status") or ORDER_NOT_FOUND

        return ORDER_NOT_FOUND
