# src/core/__init__.py
"""
Доменный слой (Core Domain).
Заказы, партнёры доставки и трекинг в реальном времени.
"""

from src.core.orders import Order, OrderService
from src.core.partners import LocationSample, Partner
from src.core.tracking import BroadcastHub, get_hub

__all__ = [
    "Order",
    "OrderService",
    "LocationSample",
    "Partner",
    "BroadcastHub",
    "get_hub",
]
