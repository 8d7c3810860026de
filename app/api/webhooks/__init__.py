# app/api/webhooks/__init__.py
"""Входящие вебхуки."""
