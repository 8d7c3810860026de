"""Test configuration and fixtures"""

import os
from types import SimpleNamespace

# Движок в infrastructure.database.base создаётся при импорте
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.app import create_app
from app.bot.services.events import OrderEventBus
from app.bot.services.notifications import NotificationDispatcher
from app.bot.services.orders import OrderService
from config.settings import Settings
from infrastructure.database import get_db_session
from infrastructure.database.base import Base
from infrastructure.database.models import Product
from infrastructure.livesklad import LiveSkladClient


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
STAFF_CHAT_ID = -1002215846590
ADMIN_TOKEN = "admin-secret"


class FakeBot:
    """
    Записывает все вызовы Bot API.

    fail = {"send_message": asyncio.TimeoutError()}: метод падает.
    """

    def __init__(self):
        self.calls = []
        self.fail = {}
        self._next_message_id = 100

    def _record(self, method, **kwargs):
        self.calls.append((method, kwargs))
        error = self.fail.get(method)
        if error is not None:
            raise error

    def sent(self, method):
        return [kwargs for name, kwargs in self.calls if name == method]

    async def send_message(self, chat_id, text, **kwargs):
        self._record("send_message", chat_id=chat_id, text=text, **kwargs)
        self._next_message_id += 1
        return SimpleNamespace(message_id=self._next_message_id, chat=SimpleNamespace(id=chat_id))

    async def edit_message_text(self, text, chat_id=None, message_id=None, **kwargs):
        self._record("edit_message_text", chat_id=chat_id, message_id=message_id, text=text, **kwargs)
        return True

    async def answer_callback_query(self, callback_query_id, text=None, show_alert=False, **kwargs):
        self._record("answer_callback_query", callback_query_id=callback_query_id, text=text, show_alert=show_alert)
        return True

    async def send_photo(self, chat_id, photo, caption=None, **kwargs):
        self._record("send_photo", chat_id=chat_id, photo=photo, caption=caption, **kwargs)
        self._next_message_id += 1
        return SimpleNamespace(message_id=self._next_message_id, chat=SimpleNamespace(id=chat_id))


@pytest.fixture
async def test_db():
    """Create test database"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def fake_bot():
    return FakeBot()


@pytest.fixture
def notifier(fake_bot):
    return NotificationDispatcher(fake_bot, staff_chat_id=STAFF_CHAT_ID, timeout=1.0)


@pytest.fixture
def bus():
    return OrderEventBus()


@pytest.fixture
def order_service(test_db, notifier, bus):
    return OrderService(test_db, notifier, bus)


def catalog():
    return [
        Product(id="screen", name="Экран iPhone 11", category_name="Дисплеи", quantity=5, retail_price=3500),
        Product(id="battery", name="Аккумулятор iPhone 11", category_name="Аккумуляторы", quantity=2, retail_price=1500),
        Product(id="glass", name="Защитное стекло", category_name="Аксессуары", quantity=0, retail_price=300),
        Product(id="hidden", name="Снятый товар", category_name="Аксессуары", quantity=3, is_visible=False),
    ]


@pytest.fixture
async def test_products(test_db):
    """Create test products"""
    products = catalog()
    test_db.add_all(products)
    await test_db.commit()
    return products


@pytest.fixture
async def file_sessions(tmp_path):
    """
    SQLite в файле: у каждой сессии своё соединение,
    поэтому параллельные сценарии (asyncio.gather) реально конкурируют.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def enable_wal(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        session.add_all(catalog())
        await session.commit()

    yield session_factory

    await engine.dispose()


def make_items(*lines):
    """make_items(("screen", 3500, 1)) → корзина для checkout"""
    return [
        {"id": product_id, "name": f"Товар {product_id}", "price": price, "quantity": quantity}
        for product_id, price, quantity in lines
    ]


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url=TEST_DATABASE_URL,
        admin_api_token=ADMIN_TOKEN,
        staff_chat_id=STAFF_CHAT_ID,
        livesklad_login="shop",
        livesklad_password="secret",
    )


@pytest.fixture
def app(settings, test_db, notifier, bus):
    """FastAPI с тестовой БД и FakeBot"""
    application = create_app(
        settings,
        notifier=notifier,
        bus=bus,
        livesklad=LiveSkladClient("https://livesklad.test", None, None),
        manage_database=False,
    )

    async def override_get_db():
        yield test_db

    application.dependency_overrides[get_db_session] = override_get_db
    return application


@pytest.fixture
async def client(app):
    """Create test client with overridden database"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
async def admin_client(client):
    client.headers["X-Admin-Token"] = ADMIN_TOKEN
    return client
