# app/bot/utils/phone.py
"""Проверка номеров телефона (оформление заказа и форма заявки)."""

import re

PHONE_PATTERN = re.compile(r"^[+\d\s()-]+$")
MIN_PHONE_LENGTH = 10


def validate_phone(phone: str) -> bool:
    """
    Только цифры, пробелы, +, скобки и дефис, минимум 10 символов.

    Пример:
        validate_phone("+7 (999) 123-45-67")   # True
        validate_phone("12345")                # False
    """
    if not phone:
        return False
    phone = phone.strip()
    return len(phone) >= MIN_PHONE_LENGTH and bool(PHONE_PATTERN.match(phone))


def format_phone(phone: str) -> str:
    """
    Приводит номер к виду +7XXXXXXXXXX (для поиска и ссылок tel:).
    Номер, который не похож на российский, возвращаем как есть (только цифры и +).
    """
    digits = re.sub(r"\D", "", phone or "")

    if len(digits) == 11 and digits[0] in "78":
        return "+7" + digits[1:]
    if len(digits) == 10:
        return "+7" + digits

    return ("+" + digits) if phone.strip().startswith("+") else digits
