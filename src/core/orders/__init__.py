# src/core/orders/__init__.py
"""
Домен заказов.
Модели, таблица переходов статуса, репозитории и сервис.
"""

from src.core.orders.models import Customer, Earning, EarningsSummary, Order
from src.core.orders.repository import EarningRepository, OrderRepository
from src.core.orders.service import OrderService
from src.core.orders.state_machine import OrderStateMachine

__all__ = [
    "Customer",
    "Earning",
    "EarningsSummary",
    "Order",
    "EarningRepository",
    "OrderRepository",
    "OrderService",
    "OrderStateMachine",
]
