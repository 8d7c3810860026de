# infrastructure/database/repositories.py
"""
Repository паттерн.

Вместо того чтобы писать:
    session.execute(select(...))
    session.commit()
везде в коде, мы создаем методы:
    repo.get_by_id("...")
    repo.create(...)

Это делает код чище и безопаснее.

Методы которые пишут в БД принимают commit=True.
commit=False = только flush, транзакцию закроет вызывающий
(так оформление заказа + списание остатков идут одной транзакцией).
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
# Асинхронная сессия БД

from sqlalchemy import delete, func, or_, select, update
# Функции для написания SQL

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from app.errors import NotFoundError, ValidationError
from .models import (
    ChatMessage,
    Order,
    OrderStatus,
    Product,
    Service,
    ServiceCategory,
    ShopSetting,
    TelegramAuthCode,
    TelegramUser,
)

import structlog

logger = structlog.get_logger()


ORDER_SORT_FIELDS = {
    "created_at": Order.created_at,
    "total_amount": Order.total_amount,
}


def _to_decimal(value, field: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)


# ==========================================
# REPOSITORY: Order (работа с заказами)
# ==========================================

class OrderRepository:
    """
    Репозиторий для работы с заказами.
    Единственное место где пишется orders.status.

    ВАЖНО: update_status() НЕ проверяет переходы статусов.
    Это делает StatusMachine в OrderService.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        items: List[dict],
        # Снимок корзины [{"id", "name", "price", "quantity"}]
        total_amount,
        phone_number: str,
        telegram_user_id: Optional[str] = None,
        telegram_username: Optional[str] = None,
        customer_name: Optional[str] = None,
        commit: bool = True
    ) -> Order:
        """
        Создать заказ со статусом pending.

        Пример:
            order = await repo.create(
                items=[{"id": "p1", "name": "Экран", "price": 1000, "quantity": 2}],
                total_amount=2000,
                phone_number="+79990001111",
            )
        """

        if not items:
            raise ValidationError("Order must contain at least one item", field="items")

        total = _to_decimal(total_amount, "total")
        if total <= 0:
            raise ValidationError("Order total must be positive", field="total")

        if not phone_number or not phone_number.strip():
            raise ValidationError("Phone number is required", field="phoneNumber")

        for item in items:
            if int(item.get("quantity", 0)) < 1:
                raise ValidationError(
                    f"Quantity for {item.get('name')!r} must be at least 1",
                    field="items"
                )
            if _to_decimal(item.get("price", 0), "price") < 0:
                raise ValidationError(
                    f"Price for {item.get('name')!r} must not be negative",
                    field="items"
                )

        order = Order(
            items=list(items),
            total_amount=total,
            phone_number=phone_number.strip(),
            telegram_user_id=str(telegram_user_id) if telegram_user_id else None,
            telegram_username=telegram_username,
            customer_name=customer_name,
            status=OrderStatus.PENDING
            # Статус: только что оформлен
        )
        self.session.add(order)

        if commit:
            await self.session.commit()
        else:
            await self.session.flush()
            # flush нужен чтобы получить order.id

        logger.info(
            "order_created",
            order_id=order.id,
            items=len(items),
            total=str(total),
            guest=order.is_guest
        )

        return order

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """
        Получить заказ по ID.

        Пример:
            order = await repo.get_by_id("2f6c...")
        """
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)

        return result.scalars().first()

    async def get_or_raise(self, order_id: str) -> Order:
        order = await self.get_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", order_id=order_id)
        return order

    async def update_status(self, order_id: str, status: OrderStatus) -> Order:
        """
        Обновить статус заказа.

        Никаких проверок графа переходов: только запись.
        NotFoundError если заказа нет.

        Пример:
            order = await repo.update_status(order.id, OrderStatus.ACCEPTED)
        """
        order = await self.get_or_raise(order_id)

        order.status = status
        order.updated_at = datetime.utcnow()

        await self.session.commit()

        logger.info("order_status_updated", order_id=order_id, status=status.value)

        return order

    async def update_status_if(self, order_id: str, expected: OrderStatus, status: OrderStatus) -> bool:
        """
        UPDATE orders SET status = :status
        WHERE id = :id AND status = :expected

        False: статус успели поменять в другой сессии (двойное нажатие,
        повторная доставка апдейта Telegram). Тогда перечитываем заказ.
        """
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == OrderStatus(expected))
            .values(status=OrderStatus(status), updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()

        if result.rowcount:
            logger.info("order_status_updated", order_id=order_id, status=OrderStatus(status).value)
        return bool(result.rowcount)

    async def set_staff_message(self, order_id: str, chat_id: int, message_id: int) -> None:
        """Запоминаем куда ушла карточка заказа в беседе менеджеров."""
        stmt = update(Order).where(Order.id == order_id).values(
            staff_chat_id=chat_id,
            staff_message_id=message_id
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        search: Optional[str] = None,
        sort: str = "created_at",
        direction: str = "desc"
    ) -> List[Order]:
        """
        Список заказов для админки.

        - status: только этот статус
        - search: подстрока в id / телефоне / username (без учёта регистра)
        - sort: created_at или total_amount
        - direction: asc / desc

        Пример:
            orders = await repo.list_orders(
                status=OrderStatus.PENDING,
                search="7999",
                sort="total_amount",
                direction="asc"
            )
        """
        column = ORDER_SORT_FIELDS.get(sort)
        if column is None:
            raise ValidationError(f"Unknown sort field {sort!r}", field="sort")
        if direction not in ("asc", "desc"):
            raise ValidationError(f"Unknown sort direction {direction!r}", field="direction")

        stmt = select(Order)

        if status:
            stmt = stmt.where(Order.status == status)

        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    Order.id.ilike(pattern),
                    Order.phone_number.ilike(pattern),
                    Order.telegram_username.ilike(pattern),
                )
            )

        stmt = stmt.order_by(column.asc() if direction == "asc" else column.desc())

        result = await self.session.execute(stmt)

        return list(result.scalars().all())

    async def get_user_orders(self, telegram_user_id: str) -> List[Order]:
        """Все заказы покупателя, новые сверху."""
        stmt = (
            select(Order)
            .where(Order.telegram_user_id == str(telegram_user_id))
            .order_by(Order.created_at.desc())
        )
        result = await self.session.execute(stmt)

        return list(result.scalars().all())

    async def count_by_status(self) -> dict:
        """
        Статистика для карточек в админке.

        Пример ответа:
            {"total": 12, "pending": 3, "accepted": 2, ...}
        """
        stmt = select(Order.status, func.count(Order.id)).group_by(Order.status)
        result = await self.session.execute(stmt)

        stats = {status.value: 0 for status in OrderStatus}
        for status, count in result.all():
            stats[OrderStatus(status).value] = count
        stats["total"] = sum(stats.values())

        return stats


# ==========================================
# REPOSITORY: Product (работа со складом)
# ==========================================

class ProductRepository:
    """
    Репозиторий товаров.

    Остатки меняются ТОЛЬКО условным UPDATE одним запросом
    (никаких "прочитал → посчитал → записал" в Python).
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        stmt = (
            select(Product)
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)

        return result.scalars().first()

    async def conditional_decrement(self, product_id: str, amount: int) -> int:
        """
        UPDATE products SET quantity = quantity - :n
        WHERE id = :id AND quantity >= :n

        Возвращает количество обновлённых строк (0 или 1).
        Коммит делает вызывающий.
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.quantity >= amount)
            .values(quantity=Product.quantity - amount, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        return result.rowcount

    async def conditional_adjust(self, product_id: str, delta: int) -> int:
        """
        То же самое для ручных +/- в админке:
        UPDATE ... WHERE id = :id AND quantity + :delta >= 0
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.quantity + delta >= 0)
            .values(quantity=Product.quantity + delta, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        return result.rowcount

    async def set_quantity(self, product_id: str, quantity: int) -> int:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(quantity=quantity, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        return result.rowcount

    async def set_visibility(self, product_id: str, visible: bool) -> int:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(is_visible=visible, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        return result.rowcount

    async def list_catalog(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        only_available: bool = False,
        offset: int = 0,
        limit: int = 100
    ) -> Tuple[List[Product], int]:
        """
        Страница каталога (только is_visible=True).

        Сортировка стабильная: категория, название, id.
        Поэтому бесконечная прокрутка (offset += limit) не теряет
        и не дублирует товары.

        Возвращает (товары, всего_товаров_по_фильтру).
        """
        conditions = [Product.is_visible.is_(True)]

        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(
                    Product.name.ilike(pattern),
                    Product.code.ilike(pattern),
                    Product.article.ilike(pattern),
                )
            )

        if category:
            conditions.append(Product.category_name == category)

        if only_available:
            conditions.append(Product.quantity > 0)

        count_stmt = select(func.count(Product.id)).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(Product)
            .where(*conditions)
            .order_by(Product.category_name.asc(), Product.name.asc(), Product.id.asc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)

        return list(result.scalars().all()), total

    async def list_categories(self) -> List[str]:
        """Уникальные категории видимых товаров (для фильтра)."""
        stmt = (
            select(Product.category_name)
            .where(Product.is_visible.is_(True), Product.category_name.is_not(None))
            .distinct()
            .order_by(Product.category_name.asc())
        )
        result = await self.session.execute(stmt)

        return [name for name in result.scalars().all() if name]

    async def upsert_external(self, rows: Iterable[dict]) -> Tuple[int, int]:
        """
        Синхронизация с LiveSklad по external_id.

        Видимость (is_visible) у существующих товаров не трогаем:
        её выставляют менеджеры в админке.
        Остаток пишется отдельным UPDATE, как в InventoryAdjuster.

        Возвращает (создано, обновлено).
        """
        created = updated = 0

        for row in rows:
            external_id = row["external_id"]
            stmt = select(Product).where(Product.external_id == external_id)
            product = (await self.session.execute(stmt)).scalars().first()

            if product is None:
                self.session.add(Product(**row))
                created += 1
            else:
                for field, value in row.items():
                    if field != "quantity":
                        setattr(product, field, value)
                await self.set_quantity(product.id, row["quantity"])
                updated += 1

        await self.session.commit()

        logger.info("products_synced", created=created, updated=updated)

        return created, updated


# ==========================================
# REPOSITORY: Message (работа с сообщениями)
# ==========================================

class MessageRepository:
    """
    Репозиторий для работы с сообщениями.
    Сохраняет историю переписки (только добавление).
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def save(
        self,
        telegram_user_id: str,
        message: str,
        is_from_manager: bool,
        order_id: Optional[str] = None
    ) -> ChatMessage:
        """
        Сохранить сообщение в БД.

        Пример:
            await repo.save(
                telegram_user_id="123456789",
                message="Ваш заказ готов!",
                is_from_manager=True
            )
        """
        chat_message = ChatMessage(
            telegram_user_id=str(telegram_user_id),
            order_id=order_id,
            message=message,
            is_from_manager=is_from_manager
        )
        self.session.add(chat_message)

        await self.session.commit()
        logger.info(
            "message_saved",
            telegram_user_id=str(telegram_user_id),
            order_id=order_id,
            from_manager=is_from_manager
        )

        return chat_message

    async def get_history(
        self,
        telegram_user_id: str,
        order_id: Optional[str] = None
    ) -> List[ChatMessage]:
        """
        История переписки покупателя (старые сверху).
        Можно сузить до одного заказа.
        """
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.telegram_user_id == str(telegram_user_id))
            .order_by(ChatMessage.created_at.asc())
        )

        if order_id:
            stmt = stmt.where(ChatMessage.order_id == order_id)

        result = await self.session.execute(stmt)

        return list(result.scalars().all())


# ==========================================
# REPOSITORY: Коды входа и профили Telegram
# ==========================================

class AuthCodeRepository:
    """Коды подтверждения: один актуальный код на пользователя."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, telegram_user_id: str) -> Optional[TelegramAuthCode]:
        stmt = (
            select(TelegramAuthCode)
            .where(TelegramAuthCode.telegram_user_id == str(telegram_user_id))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)

        return result.scalars().first()

    async def upsert(
        self,
        telegram_user_id: str,
        code: str,
        expires_at: datetime,
        phone: Optional[str] = None
    ) -> TelegramAuthCode:
        """
        Новый код заменяет старый (upsert по telegram_user_id).

        Если два запроса пришли одновременно, второй INSERT
        упадёт на unique, тогда просто обновляем запись.
        """
        values = dict(code=code, expires_at=expires_at, phone=phone, verified=False)

        auth_code = await self.get(telegram_user_id)

        if auth_code is None:
            try:
                auth_code = TelegramAuthCode(telegram_user_id=str(telegram_user_id), **values)
                self.session.add(auth_code)
                await self.session.commit()
                return auth_code
            except IntegrityError:
                # Другой запрос создал код одновременно
                await self.session.rollback()
                auth_code = await self.get(telegram_user_id)
                if auth_code is None:
                    raise
                logger.info("auth_code_exists_after_race", telegram_user_id=str(telegram_user_id))

        for field, value in values.items():
            setattr(auth_code, field, value)
        await self.session.commit()

        return auth_code

    async def mark_verified(self, telegram_user_id: str) -> None:
        stmt = (
            update(TelegramAuthCode)
            .where(TelegramAuthCode.telegram_user_id == str(telegram_user_id))
            .values(verified=True)
        )
        await self.session.execute(stmt)
        await self.session.commit()


class TelegramUserRepository:
    """Профили покупателей Telegram."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, telegram_user_id: str) -> Optional[TelegramUser]:
        stmt = select(TelegramUser).where(TelegramUser.telegram_user_id == str(telegram_user_id))
        result = await self.session.execute(stmt)

        return result.scalars().first()

    async def upsert_verified(
        self,
        telegram_user_id: str,
        phone: Optional[str] = None,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None
    ) -> TelegramUser:
        """
        Создать или обновить профиль после успешного ввода кода.
        Пустые значения не затирают уже сохранённые.
        """
        user = await self.get(telegram_user_id)

        if user is None:
            user = TelegramUser(telegram_user_id=str(telegram_user_id))
            self.session.add(user)
            logger.info("telegram_user_created", telegram_user_id=str(telegram_user_id))

        if phone:
            user.phone = phone
        if username:
            user.username = username
        if first_name:
            user.first_name = first_name
        if last_name:
            user.last_name = last_name

        user.verified = True
        user.last_login = datetime.utcnow()

        await self.session.commit()

        return user


# ==========================================
# REPOSITORY: Прайс на услуги
# ==========================================

class ServiceRepository:
    """
    Разделы прайса и услуги в них.

    Пример:
        repo = ServiceRepository(session)
        screens = await repo.create_category("Замена экрана", icon="smartphone")
        await repo.create_service(screens.id, "iPhone 11", "от 3500 ₽")
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_catalog(self) -> List[ServiceCategory]:
        """Все разделы вместе с услугами, в порядке добавления."""
        stmt = (
            select(ServiceCategory)
            .options(selectinload(ServiceCategory.services))
            .order_by(ServiceCategory.created_at.asc(), ServiceCategory.name.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)

        return list(result.scalars().all())

    async def get_category(self, category_id: str) -> ServiceCategory:
        category = await self.session.get(ServiceCategory, category_id, populate_existing=True)
        if category is None:
            raise NotFoundError(f"Service category {category_id} not found", category_id=category_id)
        return category

    async def get_service(self, service_id: str) -> Service:
        service = await self.session.get(Service, service_id, populate_existing=True)
        if service is None:
            raise NotFoundError(f"Service {service_id} not found", service_id=service_id)
        return service

    async def create_category(self, name: str, icon: Optional[str] = None) -> ServiceCategory:
        category = ServiceCategory(name=name, icon=icon)
        self.session.add(category)
        await self._commit_unique(name)

        logger.info("service_category_created", category_id=category.id, name=name)
        return category

    async def update_category(self, category_id: str, **fields) -> ServiceCategory:
        category = await self.get_category(category_id)
        for field, value in fields.items():
            setattr(category, field, value)
        await self._commit_unique(category.name)

        return category

    async def delete_category(self, category_id: str) -> None:
        """Раздел удаляется вместе со своими услугами."""
        await self.get_category(category_id)

        await self.session.execute(delete(Service).where(Service.category_id == category_id))
        await self.session.execute(delete(ServiceCategory).where(ServiceCategory.id == category_id))
        await self.session.commit()

        logger.info("service_category_deleted", category_id=category_id)

    async def create_service(self, category_id: str, name: str, price: str) -> Service:
        await self.get_category(category_id)

        service = Service(category_id=category_id, name=name, price=price)
        self.session.add(service)
        await self.session.commit()

        logger.info("service_created", service_id=service.id, category_id=category_id)
        return service

    async def update_service(self, service_id: str, **fields) -> Service:
        service = await self.get_service(service_id)

        if fields.get("category_id"):
            await self.get_category(fields["category_id"])

        for field, value in fields.items():
            setattr(service, field, value)
        await self.session.commit()

        return service

    async def delete_service(self, service_id: str) -> None:
        result = await self.session.execute(delete(Service).where(Service.id == service_id))
        await self.session.commit()

        if not result.rowcount:
            raise NotFoundError(f"Service {service_id} not found", service_id=service_id)
        logger.info("service_deleted", service_id=service_id)

    async def _commit_unique(self, name: str) -> None:
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ValidationError(f"Service category {name!r} already exists", field="name")


# ==========================================
# REPOSITORY: Настройки витрины
# ==========================================

class SettingsRepository:
    """Ключ → значение. Одна запись на ключ."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> Optional[ShopSetting]:
        stmt = (
            select(ShopSetting)
            .where(ShopSetting.key == key)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)

        return result.scalars().first()

    async def set(self, key: str, value: str) -> ShopSetting:
        setting = await self.get(key)

        if setting is None:
            setting = ShopSetting(key=key, value=value)
            self.session.add(setting)
        else:
            setting.value = value
            setting.updated_at = datetime.utcnow()

        await self.session.commit()

        logger.info("shop_setting_saved", key=key)
        return setting
