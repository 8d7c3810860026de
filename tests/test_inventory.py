"""Тесты остатков на складе"""

import asyncio

import pytest

from app.bot.services.inventory import InventoryAdjuster
from app.errors import NotFoundError, OutOfStockError, ValidationError
from infrastructure.database.models import Product
from infrastructure.database.repositories import ProductRepository
from infrastructure.livesklad import map_product


async def quantity_of(session, product_id):
    return (await ProductRepository(session).get_by_id(product_id)).quantity


async def test_decrement_reduces_stock(test_db, test_products):
    inventory = InventoryAdjuster(test_db)

    assert await inventory.decrement("screen", 2) is True
    await test_db.commit()

    assert await quantity_of(test_db, "screen") == 3


async def test_decrement_missing_product_is_skipped(test_db, test_products):
    inventory = InventoryAdjuster(test_db)

    assert await inventory.decrement("no-such-product", 1) is False


async def test_decrement_insufficient_stock(test_db, test_products):
    inventory = InventoryAdjuster(test_db)

    with pytest.raises(OutOfStockError) as exc_info:
        await inventory.decrement("battery", 3)

    assert exc_info.value.context["available"] == 2
    await test_db.rollback()
    assert await quantity_of(test_db, "battery") == 2


async def test_decrement_rejects_non_positive_amount(test_db, test_products):
    with pytest.raises(ValidationError):
        await InventoryAdjuster(test_db).decrement("screen", 0)


async def test_adjust_up_and_down(test_db, test_products):
    inventory = InventoryAdjuster(test_db)

    product = await inventory.adjust("battery", 3)
    assert product.quantity == 5

    product = await inventory.adjust("battery", -5)
    assert product.quantity == 0


async def test_adjust_cannot_go_negative(test_db, test_products):
    inventory = InventoryAdjuster(test_db)

    with pytest.raises(ValidationError):
        await inventory.adjust("glass", -1)

    assert await quantity_of(test_db, "glass") == 0


async def test_adjust_missing_product(test_db, test_products):
    with pytest.raises(NotFoundError):
        await InventoryAdjuster(test_db).adjust("nope", 1)


async def test_set_quantity(test_db, test_products):
    inventory = InventoryAdjuster(test_db)

    product = await inventory.set_quantity("glass", 12)
    assert product.quantity == 12

    with pytest.raises(ValidationError):
        await inventory.set_quantity("glass", -1)


async def test_set_visibility(test_db, test_products):
    product = await InventoryAdjuster(test_db).set_visibility("hidden", True)

    assert product.is_visible is True


async def test_stock_never_negative_under_concurrent_demand(file_sessions):
    """Остаток 2, пять параллельных списаний по одной штуке: проходят ровно 2."""

    async def take_one():
        async with file_sessions() as session:
            try:
                await InventoryAdjuster(session).decrement("battery", 1)
                await session.commit()
                return True
            except OutOfStockError:
                await session.rollback()
                return False

    outcomes = await asyncio.gather(*(take_one() for _ in range(5)))

    assert outcomes.count(True) == 2
    async with file_sessions() as session:
        assert await quantity_of(session, "battery") == 0


async def test_sync_writes_quantity_even_if_session_copy_is_stale(test_db):
    repo = ProductRepository(test_db)
    test_db.add(Product(id="cable", external_id="ls-9", name="Кабель", quantity=5))
    await test_db.commit()

    await repo.get_by_id("cable")
    await repo.conditional_decrement("cable", 2)
    await test_db.commit()

    # В сессии лежит старая копия с quantity=5, в БД уже 3
    await repo.upsert_external([map_product({"id": "ls-9", "name": "Кабель", "quantity": 5})])

    assert await quantity_of(test_db, "cable") == 5
