# infrastructure/logger.py
"""
📝 ЛОГИРОВАНИЕ

structlog поверх стандартного logging.

- production: одна JSON строка на событие (их собирает хостинг)
- development: цветной вывод в консоль

События называем snake_case: "order_created", "order_status_changed",
"telegram_delivery_failed". Контекст передаём ключами:
    logger.info("order_created", order_id=order.id, total=...)
"""

import logging
import sys
from typing import Optional

import structlog

from config.settings import config

SERVICE_NAME = "doctorgadget_shop"


def _add_service(logger, method_name, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None):
    """
    Вызывается один раз при старте (main.py).

    json_logs=None → JSON только в production.
    """
    log_level = getattr(logging, (level or config.log_level).upper(), logging.INFO)
    if json_logs is None:
        json_logs = config.environment == "production"

    renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _add_service,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    # aiogram на DEBUG пишет каждый апдейт
    logging.getLogger("aiogram.event").setLevel(max(log_level, logging.INFO))
