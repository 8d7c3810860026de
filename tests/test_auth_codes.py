"""Тесты входа по коду из Telegram"""

from datetime import datetime, timedelta

import pytest

from app.bot.services.user_service import AuthService, generate_code
from app.errors import ValidationError
from infrastructure.database.repositories import AuthCodeRepository, TelegramUserRepository


def test_generate_code_is_six_digits():
    for _ in range(50):
        code = generate_code()
        assert len(code) == 6
        assert code.isdigit()


async def test_send_code_stores_and_delivers(test_db, notifier, fake_bot):
    code = await AuthService(test_db, notifier).send_code("42", phone="+79990001111")

    stored = await AuthCodeRepository(test_db).get("42")
    assert stored.code == code
    assert stored.phone == "+79990001111"
    assert stored.verified is False

    [sent] = fake_bot.sent("send_message")
    assert sent["chat_id"] == 42
    assert sent["text"] == f"🔐 Ваш код подтверждения: {code}\n\nКод действителен 5 минут."


async def test_new_code_replaces_old(test_db, notifier):
    service = AuthService(test_db, notifier)
    first = await service.send_code("42")
    second = await service.send_code("42")

    stored = await AuthCodeRepository(test_db).get("42")
    assert stored.code == second
    if first != second:
        with pytest.raises(ValidationError):
            await service.verify_code("42", first)


async def test_verify_creates_profile(test_db, notifier):
    service = AuthService(test_db, notifier)
    code = await service.send_code("42", phone="+79990001111")

    user = await service.verify_code("42", code, username="ivan", first_name="Иван")

    assert user.verified is True
    assert user.phone == "+79990001111"
    assert user.last_login is not None
    assert (await TelegramUserRepository(test_db).get("42")).username == "ivan"


async def test_verify_errors(test_db, notifier):
    service = AuthService(test_db, notifier)

    with pytest.raises(ValidationError, match="Code not found"):
        await service.verify_code("42", "123456")

    code = await service.send_code("42")
    wrong = "000000" if code != "000000" else "111111"
    with pytest.raises(ValidationError, match="Invalid code"):
        await service.verify_code("42", wrong)

    await service.verify_code("42", code)
    with pytest.raises(ValidationError, match="Code already used"):
        await service.verify_code("42", code)


async def test_expired_code(test_db, notifier):
    await AuthCodeRepository(test_db).upsert("42", "123456", datetime.utcnow() - timedelta(seconds=1))

    with pytest.raises(ValidationError, match="Code expired"):
        await AuthService(test_db, notifier).verify_code("42", "123456")


async def test_auth_endpoints(client, test_db, fake_bot):
    response = await client.post("/api/auth/send_code", json={"telegramUserId": 42, "phone": "+79990001111"})
    assert response.status_code == 200
    assert response.json()["success"] is True

    code = (await AuthCodeRepository(test_db).get("42")).code

    response = await client.post("/api/auth/verify_code", json={"telegramUserId": 42, "code": "x"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid code"

    response = await client.post("/api/auth/verify_code", json={"telegramUserId": 42, "code": code})
    assert response.status_code == 200
    assert response.json()["profile"]["telegramUserId"] == "42"
    assert response.json()["profile"]["verified"] is True
