# app/bot/services/status_machine.py
"""
🔀 МАШИНА СОСТОЯНИЙ ЗАКАЗА

    pending ──► accepted ──► ready ──► completed
       │            │          │
       └────────────┴──────────┴──► cancelled

completed и cancelled: конечные, из них никуда.

Все смены статуса (кнопки в Telegram, админка) проходят через
ensure_transition(). Репозиторий сам ничего не проверяет.
"""

from typing import Dict, FrozenSet, NamedTuple

from app.errors import InvalidTransitionError, ParseError
from infrastructure.database.models import OrderStatus


TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.ACCEPTED, OrderStatus.CANCELLED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class StatusLabel(NamedTuple):
    emoji: str
    staff: str
    # Как статус подписан в беседе менеджеров
    customer: str
    # Как статус видит покупатель


LABELS: Dict[OrderStatus, StatusLabel] = {
    OrderStatus.PENDING: StatusLabel("🕐", "Новый", "Ожидает подтверждения"),
    OrderStatus.ACCEPTED: StatusLabel("✅", "Принят", "Принят в работу"),
    OrderStatus.READY: StatusLabel("📦", "Готов к выдаче", "Готов к выдаче"),
    OrderStatus.COMPLETED: StatusLabel("✔️", "Выдан", "Выдан"),
    OrderStatus.CANCELLED: StatusLabel("❌", "Отменён", "Отменён"),
}


# Глагол из callback_data → целевой статус
ACTIONS: Dict[str, OrderStatus] = {
    "accept": OrderStatus.ACCEPTED,
    "ready": OrderStatus.READY,
    "complete": OrderStatus.COMPLETED,
    "cancel": OrderStatus.CANCELLED,
}

VERBS: Dict[OrderStatus, str] = {status: verb for verb, status in ACTIONS.items()}


def allowed_targets(current: OrderStatus) -> FrozenSet[OrderStatus]:
    return TRANSITIONS[OrderStatus(current)]


def is_terminal(status: OrderStatus) -> bool:
    return not TRANSITIONS[OrderStatus(status)]


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """
    Разрешён ли переход current → target.

    Пример:
        can_transition(OrderStatus.PENDING, OrderStatus.ACCEPTED)    # True
        can_transition(OrderStatus.COMPLETED, OrderStatus.PENDING)   # False
    """
    return OrderStatus(target) in TRANSITIONS[OrderStatus(current)]


def ensure_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """
    Проверяет переход.

    Возвращает:
        True: переход нужен и разрешён
        False: заказ уже в этом статусе (повторное нажатие, ничего не делаем)

    Кидает InvalidTransitionError если переход запрещён.
    """
    current, target = OrderStatus(current), OrderStatus(target)

    if current == target:
        return False

    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Cannot change order status from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )

    return True


def status_for_action(verb: str) -> OrderStatus:
    try:
        return ACTIONS[verb]
    except KeyError:
        raise ParseError(f"Unknown order action {verb!r}", verb=verb)


def staff_label(status: OrderStatus) -> str:
    label = LABELS[OrderStatus(status)]
    return f"{label.emoji} {label.staff}"


def customer_label(status: OrderStatus) -> str:
    return LABELS[OrderStatus(status)].customer
