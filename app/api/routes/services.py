# app/api/routes/services.py
"""
🔧 Прайс на ремонт и настройки витрины (публичная часть).

- GET /api/services: разделы прайса с услугами
- GET /api/settings/{key}: одна настройка (например ссылка на карту)

Править всё это можно только из админки (app/api/routes/admin.py).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import category_to_dict
from app.errors import NotFoundError
from infrastructure.database import get_db_session
from infrastructure.database.repositories import ServiceRepository, SettingsRepository

router = APIRouter(prefix="/api", tags=["services"])


@router.get("/services")
async def list_services(session: AsyncSession = Depends(get_db_session)):
    """
    Пример ответа:
        {"categories": [{"id": "...", "name": "Замена экрана", "icon": "smartphone",
                         "services": [{"id": "...", "name": "iPhone 11", "price": "от 3500 ₽"}]}]}
    """
    categories = await ServiceRepository(session).list_catalog()
    return {"categories": [category_to_dict(category, category.services) for category in categories]}


@router.get("/settings/{key}")
async def get_setting(key: str, session: AsyncSession = Depends(get_db_session)):
    setting = await SettingsRepository(session).get(key)
    if setting is None:
        raise NotFoundError(f"Setting {key!r} not found", key=key)
    return {"key": setting.key, "value": setting.value}
