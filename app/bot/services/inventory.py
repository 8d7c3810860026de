# app/bot/services/inventory.py
"""
📦 СКЛАД (остатки товаров)

Остаток (products.quantity): общее изменяемое состояние:
его одновременно трогают оформление заказа и кнопки +/- в админке.
Поэтому каждое изменение = один условный UPDATE в БД.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import NotFoundError, OutOfStockError, ValidationError
from infrastructure.database.models import Product
from infrastructure.database.repositories import ProductRepository

import structlog

logger = structlog.get_logger()


class InventoryAdjuster:
    """Все изменения остатков идут через этот класс."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.products = ProductRepository(session)

    # ==========================================
    # СПИСАНИЕ ПРИ ЗАКАЗЕ
    # ==========================================

    async def decrement(self, product_id: str, amount: int) -> bool:
        """
        Списать amount штук при оформлении заказа.

        НЕ коммитит: это часть транзакции заказа.

        - товар есть и хватает → списали, True
        - товара нет в базе → пишем в лог, False (заказ не валим)
        - товара не хватает → OutOfStockError (заказ откатывается)
        """
        if amount < 1:
            raise ValidationError("Amount to decrement must be at least 1", product_id=product_id)

        updated = await self.products.conditional_decrement(product_id, amount)
        if updated:
            logger.info("inventory_decremented", product_id=product_id, amount=amount)
            return True

        product = await self.products.get_by_id(product_id)
        if product is None:
            logger.warning("inventory_product_missing", product_id=product_id, amount=amount)
            return False

        logger.warning(
            "inventory_insufficient",
            product_id=product_id,
            requested=amount,
            available=product.quantity
        )
        raise OutOfStockError(
            f"Not enough stock for {product.name!r}: requested {amount}, available {product.quantity}",
            product_id=product_id,
            requested=amount,
            available=product.quantity,
        )

    # ==========================================
    # РУЧНЫЕ ИЗМЕНЕНИЯ (админка)
    # ==========================================

    async def adjust(self, product_id: str, delta: int) -> Product:
        """
        Кнопки +/- в админке.

        Пример:
            product = await inventory.adjust("p1", -1)
        """
        updated = await self.products.conditional_adjust(product_id, delta)

        if not updated:
            await self.session.rollback()
            product = await self.products.get_by_id(product_id)
            if product is None:
                raise NotFoundError(f"Product {product_id} not found", product_id=product_id)
            raise ValidationError(
                f"Quantity of {product.name!r} cannot become negative",
                product_id=product_id,
                quantity=product.quantity,
                delta=delta,
            )

        await self.session.commit()
        logger.info("inventory_adjusted", product_id=product_id, delta=delta)

        return await self.products.get_by_id(product_id)

    async def set_quantity(self, product_id: str, quantity: int) -> Product:
        """Выставить остаток целиком (форма редактирования товара)."""
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative", product_id=product_id)

        return await self._apply(
            product_id,
            await self.products.set_quantity(product_id, quantity),
            "inventory_quantity_set",
            quantity=quantity
        )

    async def set_visibility(self, product_id: str, visible: bool) -> Product:
        """Показать / скрыть товар в магазине."""
        return await self._apply(
            product_id,
            await self.products.set_visibility(product_id, visible),
            "product_visibility_set",
            visible=visible
        )

    async def _apply(self, product_id: str, updated: int, event: str, **context) -> Product:
        if not updated:
            await self.session.rollback()
            raise NotFoundError(f"Product {product_id} not found", product_id=product_id)

        await self.session.commit()
        logger.info(event, product_id=product_id, **context)

        return await self.products.get_by_id(product_id)
