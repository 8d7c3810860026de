# app/api/routes/admin.py
"""
🛠 АДМИНКА

Все маршруты требуют заголовок X-Admin-Token.

Заказы: список + статистика, смена статуса (через машину состояний)
Склад: +/- остаток, выставить остаток, показать/скрыть, синхронизация с LiveSklad
Прайс: разделы и услуги (создать, изменить, удалить), настройки витрины
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_livesklad, get_order_service, require_admin
from app.api.schemas import (
    AdjustPayload,
    QuantityPayload,
    ServiceCategoryPayload,
    ServiceCategoryUpdatePayload,
    ServicePayload,
    ServiceUpdatePayload,
    SettingPayload,
    StatusPayload,
    VisibilityPayload,
    category_to_dict,
    product_to_dict,
    service_to_dict,
)
from app.bot.services.events import order_snapshot
from app.bot.services.inventory import InventoryAdjuster
from app.bot.services.orders import OrderService
from infrastructure.database import get_db_session
from infrastructure.database.models import OrderStatus
from infrastructure.database.repositories import (
    OrderRepository,
    ProductRepository,
    ServiceRepository,
    SettingsRepository,
)
from infrastructure.livesklad import LiveSkladClient

import structlog

logger = structlog.get_logger()

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ==========================================
# ЗАКАЗЫ
# ==========================================

@router.get("/orders")
async def list_orders(
    status: Optional[OrderStatus] = None,
    search: Optional[str] = None,
    sort: str = "created_at",
    direction: str = "desc",
    session: AsyncSession = Depends(get_db_session)
):
    repo = OrderRepository(session)
    orders = await repo.list_orders(status=status, search=search, sort=sort, direction=direction)

    return {
        "items": [order_snapshot(order) for order in orders],
        "stats": await repo.count_by_status(),
    }


@router.patch("/orders/{order_id}/status")
async def change_order_status(
    order_id: str,
    payload: StatusPayload,
    service: OrderService = Depends(get_order_service)
):
    """409 если такой переход запрещён (например completed → pending)."""
    order, changed = await service.change_status(order_id, payload.status)
    return {"order": order_snapshot(order), "changed": changed}


# ==========================================
# СКЛАД
# ==========================================

@router.post("/products/{product_id}/adjust")
async def adjust_product(product_id: str, payload: AdjustPayload, session: AsyncSession = Depends(get_db_session)):
    product = await InventoryAdjuster(session).adjust(product_id, payload.delta)
    return product_to_dict(product)


@router.put("/products/{product_id}/quantity")
async def set_product_quantity(
    product_id: str,
    payload: QuantityPayload,
    session: AsyncSession = Depends(get_db_session)
):
    product = await InventoryAdjuster(session).set_quantity(product_id, payload.quantity)
    return product_to_dict(product)


@router.patch("/products/{product_id}/visibility")
async def set_product_visibility(
    product_id: str,
    payload: VisibilityPayload,
    session: AsyncSession = Depends(get_db_session)
):
    product = await InventoryAdjuster(session).set_visibility(product_id, payload.is_visible)
    return product_to_dict(product)


@router.post("/products/sync")
async def sync_products(
    session: AsyncSession = Depends(get_db_session),
    livesklad: LiveSkladClient = Depends(get_livesklad)
):
    """Подтянуть товары из LiveSklad (по external_id)."""
    rows = await livesklad.fetch_products()
    created, updated = await ProductRepository(session).upsert_external(rows)

    return {"created": created, "updated": updated}


# ==========================================
# ПРАЙС НА УСЛУГИ
# ==========================================

@router.post("/service_categories", status_code=201)
async def create_service_category(payload: ServiceCategoryPayload, session: AsyncSession = Depends(get_db_session)):
    category = await ServiceRepository(session).create_category(payload.name.strip(), icon=payload.icon)
    return category_to_dict(category)


@router.patch("/service_categories/{category_id}")
async def update_service_category(
    category_id: str,
    payload: ServiceCategoryUpdatePayload,
    session: AsyncSession = Depends(get_db_session)
):
    fields = payload.model_dump(exclude_unset=True, exclude_none=True)
    category = await ServiceRepository(session).update_category(category_id, **fields)
    return category_to_dict(category)


@router.delete("/service_categories/{category_id}")
async def delete_service_category(category_id: str, session: AsyncSession = Depends(get_db_session)):
    """Вместе с разделом удаляются его услуги."""
    await ServiceRepository(session).delete_category(category_id)
    return {"deleted": category_id}


@router.post("/services", status_code=201)
async def create_service(payload: ServicePayload, session: AsyncSession = Depends(get_db_session)):
    service = await ServiceRepository(session).create_service(payload.category_id, payload.name.strip(), payload.price)
    return service_to_dict(service)


@router.patch("/services/{service_id}")
async def update_service(
    service_id: str,
    payload: ServiceUpdatePayload,
    session: AsyncSession = Depends(get_db_session)
):
    fields = payload.model_dump(exclude_unset=True, exclude_none=True)
    service = await ServiceRepository(session).update_service(service_id, **fields)
    return service_to_dict(service)


@router.delete("/services/{service_id}")
async def delete_service(service_id: str, session: AsyncSession = Depends(get_db_session)):
    await ServiceRepository(session).delete_service(service_id)
    return {"deleted": service_id}


# ==========================================
# НАСТРОЙКИ ВИТРИНЫ
# ==========================================

@router.put("/settings/{key}")
async def save_setting(key: str, payload: SettingPayload, session: AsyncSession = Depends(get_db_session)):
    setting = await SettingsRepository(session).set(key, payload.value)
    return {"key": setting.key, "value": setting.value}
