# app/api/routes/products.py
"""
🛍 GET /api/products: каталог витрины.

Только видимые товары, по 100 штук на страницу максимум,
сортировка: категория → название.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import product_to_dict
from infrastructure.database import get_db_session
from infrastructure.database.repositories import ProductRepository

router = APIRouter(prefix="/api", tags=["products"])

MAX_PAGE_SIZE = 100


@router.get("/products")
async def list_products(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=MAX_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = None,
    category: Optional[str] = None,
    available: bool = False,
    # available=true: только то что есть на складе
    session: AsyncSession = Depends(get_db_session)
):
    repo = ProductRepository(session)
    offset = (page - 1) * page_size

    items, total = await repo.list_catalog(
        search=search,
        category=category,
        only_available=available,
        offset=offset,
        limit=page_size
    )

    return {
        "items": [product_to_dict(product) for product in items],
        "total": total,
        "page": page,
        "page_size": page_size,
        "has_more": offset + len(items) < total,
        "categories": await repo.list_categories(),
    }
