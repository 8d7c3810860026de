# main.py
"""
🚀 ГЛАВНЫЙ ФАЙЛ ЗАПУСКА

Запускает одновременно:
- Telegram бота (polling или webhook, см. TELEGRAM_MODE)
- FastAPI (витрина, админка, вебхук Telegram)

Команда для запуска:
    python main.py
"""

import asyncio

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
import uvicorn

from config.settings import config
from infrastructure.logger import setup_logging
from infrastructure.database.base import async_session_maker, close_db, init_db
from infrastructure.redis_storage import check_redis_connection, create_fsm_storage, create_redis
from app.api.app import create_app
from app.bot.handlers import build_main_router, client_router
from app.bot.middlewares import DatabaseMiddleware, LoggingMiddleware, ThrottlingMiddleware
from app.bot.services.events import OrderEventBus, RedisEventBridge
from app.bot.services.notifications import NotificationDispatcher

import structlog

logger = structlog.get_logger()


# ==========================================
# 🤖 BOT STARTUP & SHUTDOWN
# ==========================================

async def on_startup(bot: Bot):
    logger.info("bot_starting", mode=config.telegram_mode)

    if config.telegram_mode == "webhook":
        await bot.set_webhook(
            url=config.telegram_webhook_url,
            secret_token=config.telegram_webhook_secret or None,
            allowed_updates=["message", "callback_query"]
        )
        logger.info("telegram_webhook_set", url=config.telegram_webhook_url)
    else:
        # Polling и вебхук одновременно Telegram не разрешает
        await bot.delete_webhook(drop_pending_updates=False)


async def on_shutdown(bot: Bot):
    logger.info("bot_shutdown")
    await bot.session.close()


def build_dispatcher(storage, notifier: NotificationDispatcher, bus: OrderEventBus) -> Dispatcher:
    """
    Диспетчер aiogram.

    notifier и bus попадают в обработчики по имени аргумента
    (workflow data aiogram).
    """
    dp = Dispatcher(storage=storage)
    dp["notifier"] = notifier
    dp["bus"] = bus

    # Middleware добавляются в порядке FIFO: логируем первым, затем БД
    for observer in (dp.message, dp.callback_query):
        observer.outer_middleware(LoggingMiddleware())
        observer.middleware(DatabaseMiddleware(async_session_maker))

    # Покупатель пишет в личку → уходит в беседу, поэтому ограничиваем частоту
    client_router.message.middleware(ThrottlingMiddleware())

    dp.include_router(build_main_router())
    return dp


# ==========================================
# 🚀 ГЛАВНАЯ ФУНКЦИЯ ЗАПУСКА
# ==========================================

async def main():
    setup_logging()
    logger.info("application_start", environment=config.environment)

    # Без этого бот бесполезен: падаем сразу и говорим чего не хватает
    config.require("bot_token", "staff_chat_id")
    if config.telegram_mode == "webhook":
        config.require("telegram_webhook_url")

    await init_db()
    logger.info("database_ready")

    redis = create_redis(config.redis_url)
    if redis is not None and not await check_redis_connection(redis):
        logger.warning("redis_unavailable", message="FSM и события заказов без Redis работать не будут")

    bus = OrderEventBus(
        bridge=RedisEventBridge(redis, config.order_events_channel) if redis is not None else None
    )

    bot = Bot(token=config.bot_token, default=DefaultBotProperties(parse_mode="HTML"))
    notifier = NotificationDispatcher(
        bot,
        staff_chat_id=config.staff_chat_id,
        contact_channel_id=config.contact_channel_id,
        timeout=config.telegram_timeout
    )
    dp = build_dispatcher(create_fsm_storage(redis), notifier, bus)

    app = create_app(
        config,
        notifier=notifier,
        bus=bus,
        bot=bot,
        telegram_dispatcher=dp,
        manage_database=False
    )

    await on_startup(bot)

    async def run_bot():
        try:
            await dp.start_polling(bot, handle_signals=False)
        except asyncio.CancelledError:
            logger.info("polling_cancelled")
            raise

    async def run_api():
        server = uvicorn.Server(uvicorn.Config(
            app,
            host=config.api_host,
            port=config.api_port,
            log_level=config.log_level.lower(),
            access_log=True,
        ))
        logger.info("fastapi_starting", host=config.api_host, port=config.api_port)
        await server.serve()

    services = [run_api()]
    if config.telegram_mode == "polling":
        services.append(run_bot())

    try:
        # Если один упадёт, упадут оба
        await asyncio.gather(*services)
    finally:
        await on_shutdown(bot)
        if redis is not None:
            await redis.aclose()
        await close_db()
        logger.info("app_final_shutdown")


# ==========================================
# 📌 ENTRY POINT (точка входа)
# ==========================================

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("app_interrupted", message="⛔ Приложение остановлено пользователем (Ctrl+C)")
