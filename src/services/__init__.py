# src/services/__init__.py
"""
Сервисы приложения.

- tracking_api: REST API партнёра (координаты, заказы, заработок)
  и WebSocket-канал трекинга /ws
"""

__all__: list[str] = []
