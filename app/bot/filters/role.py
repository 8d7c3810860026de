# app/bot/filters/role.py
"""
Фильтры в aiogram нужны, чтобы ограничивать доступ к определенным обработчикам.

Менеджеры работают в одной беседе (STAFF_CHAT_ID),
поэтому "роль" = в каком чате пришло событие.

Пример:
    @router.message(IsStaffChat(config.staff_chat_id), F.reply_to_message)
    async def staff_reply(message: Message):
        # Выполнится только в беседе менеджеров
        ...
"""

from typing import Optional, Union

from aiogram.filters import BaseFilter
from aiogram import types


def _chat_id(event: Union[types.Message, types.CallbackQuery]) -> Optional[int]:
    if isinstance(event, types.CallbackQuery):
        return event.message.chat.id if event.message else None
    return event.chat.id


class IsStaffChat(BaseFilter):
    """
    Фильтр: событие из беседы менеджеров.

    staff_chat_id=None (не настроено) → никого не пускаем.
    """

    def __init__(self, staff_chat_id: Optional[int]):
        self.staff_chat_id = staff_chat_id

    async def __call__(self, event: Union[types.Message, types.CallbackQuery]) -> bool:
        return self.staff_chat_id is not None and _chat_id(event) == self.staff_chat_id


class IsPrivateChat(BaseFilter):
    """Фильтр: личка с ботом (покупатель)."""

    async def __call__(self, message: types.Message) -> bool:
        return message.chat.type == "private"
