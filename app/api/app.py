# app/api/app.py
"""
FastAPI приложение магазина.

Витрина (Mini App / сайт) и админка ходят сюда:
оформление заказа, каталог, чат, коды входа, админка склада.
Telegram в режиме webhook тоже присылает события сюда.

Бот, шина событий и LiveSklad передаются в create_app()
и доступны обработчикам через app.state (см. app/api/dependencies.py).
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import admin, auth, chat, checkout, contact, orders, products, services
from app.api.webhooks import telegram
from app.bot.services.events import OrderEventBus
from app.bot.services.notifications import NotificationDispatcher
from app.errors import ShopError
from config.settings import Settings, config
from infrastructure.database.base import close_db, init_db
from infrastructure.livesklad import LiveSkladClient

import structlog

logger = structlog.get_logger()


# ==========================================
# ОШИБКИ → JSON {"error": "..."}
# ==========================================

async def shop_error_handler(request: Request, exc: ShopError):
    if exc.status_code >= 500:
        logger.error("api_error", path=request.url.path, error=exc.message, error_type=type(exc).__name__)
    else:
        logger.info("api_rejected", path=request.url.path, error=exc.message, status=exc.status_code)

    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    logger.info("api_invalid_request", path=request.url.path, details=details)

    return JSONResponse(status_code=400, content={"error": "; ".join(details)})


# ==========================================
# СОЗДАНИЕ ПРИЛОЖЕНИЯ
# ==========================================

def create_app(
    settings: Settings = config,
    notifier: Optional[NotificationDispatcher] = None,
    bus: Optional[OrderEventBus] = None,
    livesklad: Optional[LiveSkladClient] = None,
    bot=None,
    telegram_dispatcher=None,
    manage_database: bool = True
) -> FastAPI:
    """
    Пример:
        app = create_app(notifier=NotificationDispatcher(bot, config.staff_chat_id))

    manage_database=False: таблицы и движок БД создаёт кто-то другой (тесты).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_database:
            await init_db()
        logger.info("api_started", environment=settings.environment)
        yield
        if manage_database:
            await close_db()
        logger.info("api_stopped")

    app = FastAPI(
        title="Doctor Gadget Shop API",
        description="Заказы, склад и Telegram-уведомления магазина «Доктор Гаджет»",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.notifier = notifier
    app.state.bus = bus if bus is not None else OrderEventBus()
    app.state.livesklad = livesklad if livesklad is not None else LiveSkladClient(
        settings.livesklad_base_url,
        settings.livesklad_login,
        settings.livesklad_password,
    )
    app.state.bot = bot
    app.state.telegram_dispatcher = telegram_dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # ==========================================
    # ENDPOINT: Health check
    # ==========================================

    @app.get("/health")
    async def health_check():
        """
        Пример:
            GET /health
            → {"status": "ok", "service": "doctorgadget_shop"}
        """
        return {"status": "ok", "service": "doctorgadget_shop"}

    for module in (checkout, auth, chat, contact, products, services, orders, admin, telegram):
        app.include_router(module.router)

    return app
