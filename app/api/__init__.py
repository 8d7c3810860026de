# app/api/__init__.py
"""
🌐 API (FastAPI)

Приложение собирается в app/api/app.py::create_app().
Маршруты: app/api/routes/, вебхук Telegram: app/api/webhooks/telegram.py
"""
