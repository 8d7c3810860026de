# app/api/routes/__init__.py
"""HTTP маршруты для витрины и админки."""
