# src/core/orders/models.py
"""
Модели данных заказов и заработка.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from src.common.constants import ACTIVE_ORDER_STATUSES, TERMINAL_ORDER_STATUSES, OrderStatus, PaymentMethod
from src.common.timezone import utc_now


class Customer(BaseModel):
    """Покупатель (только чтение, прикладывается к заказу)."""

    id: int
    name: str
    phone: str
    address: str

    class Config:
        from_attributes = True


class Order(BaseModel):
    """Модель заказа доставки."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="UUID заказа")
    order_number: str = Field(..., description="Номер заказа вида ORD-2024-000123")
    customer_id: int = Field(..., description="ID покупателя")
    assigned_partner_id: Optional[int] = Field(None, description="ID партнёра, назначается один раз")

    status: OrderStatus = Field(OrderStatus.PREPARED, description="Статус заказа")

    amount: float = Field(..., ge=0.0, description="Сумма заказа")
    delivery_fee: float = Field(0.0, ge=0.0, description="Оплата партнёру за доставку")
    payment_method: PaymentMethod = Field(PaymentMethod.CASH, description="Способ оплаты")

    delivery_address: str = Field(..., description="Адрес доставки")
    delivery_latitude: Optional[float] = Field(None, ge=-90.0, le=90.0)
    delivery_longitude: Optional[float] = Field(None, ge=-180.0, le=180.0)

    estimated_delivery_time: Optional[int] = Field(None, ge=0, description="Оценка времени доставки, минуты")
    actual_delivery_time: Optional[datetime] = Field(None, description="Фактическое время доставки")

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    customer: Optional[Customer] = Field(None, description="Данные покупателя для списков")

    class Config:
        from_attributes = True

    @property
    def is_active(self) -> bool:
        """Заказ на руках у партнёра."""
        return self.status in ACTIVE_ORDER_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES


class Earning(BaseModel):
    """Начисление за доставленный заказ. Не более одного на (партнёр, заказ)."""

    id: int
    partner_id: int
    order_id: str
    amount: float = Field(..., ge=0.0)
    created_at: datetime

    class Config:
        from_attributes = True


class EarningsSummary(BaseModel):
    """Сводка заработка за локальные сутки."""

    total: float = 0.0
    deliveries: int = 0
    currency: str = "INR"
