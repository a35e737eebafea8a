# src/services/__init__.py
"""
Сервисы приложения.

- earnings_api: FastAPI-приложение поверх доменного слоя src.core
  (одна PostgreSQL, уведомления через RabbitMQ)
"""

__all__: list[str] = []
