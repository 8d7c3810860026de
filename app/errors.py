# app/errors.py
"""
❗ ОШИБКИ ПРИЛОЖЕНИЯ

Единая иерархия исключений для магазина.
Каждая ошибка знает свой HTTP статус, поэтому FastAPI
может превратить её в ответ {"error": "..."} без лишних if.

Правило: сохранение в БД = граница восстановления.
Если заказ уже записан, ошибки доставки (Telegram, LiveSklad)
только логируются и возвращаются как частичный успех.
"""


class ShopError(Exception):
    """Базовая ошибка магазина."""

    status_code: int = 500

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.context = context


class ValidationError(ShopError):
    """Неправильные входные данные (пустая корзина, плохой телефон и т.д.)."""

    status_code = 400


class OutOfStockError(ValidationError):
    """Товара на складе меньше, чем просят."""

    status_code = 409


class InvalidTransitionError(ValidationError):
    """Запрещённый переход статуса заказа (например completed → pending)."""

    status_code = 409


class ParseError(ShopError):
    """Не смогли разобрать callback_data / текст сообщения."""

    status_code = 400


class NotFoundError(ShopError):
    """Заказ / товар / пользователь не найден."""

    status_code = 404


class UpstreamDeliveryError(ShopError):
    """Telegram или LiveSklad не ответили (ошибка или таймаут)."""

    status_code = 502


class ConfigurationError(ShopError):
    """Не хватает секретов в .env (токен бота, ID чата и т.д.)."""

    status_code = 500


class ForbiddenError(ShopError):
    """Неверный X-Admin-Token или секрет вебхука."""

    status_code = 403
