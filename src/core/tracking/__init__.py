# src/core/tracking/__init__.py
"""
Трекинг в реальном времени: хаб рассылки, сообщения канала,
приём координат и WebSocket-сессии.

Экспортируются только хаб и сообщения: ingest и session зависят от
домена заказов, который сам публикует события через хаб.
"""

from src.core.tracking.hub import BroadcastHub, get_hub
from src.core.tracking.messages import LocationUpdated, OrderStatusChanged

__all__ = [
    "BroadcastHub",
    "get_hub",
    "LocationUpdated",
    "OrderStatusChanged",
]
