# src/core/tracking/messages.py
"""
Сообщения канала трекинга (JSON text frames с полем type).
На проводе поля в camelCase, в Python в snake_case.

Клиент -> сервер: connect, locationSample, orderStatusUpdate, ping.
Сервер -> клиент: connected, locationUpdate, orderStatusUpdate, error, pong.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from src.common.constants import OrderStatus
from src.common.timezone import utc_now


class WireMessage(BaseModel):
    """База всех сообщений канала."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_wire(self) -> dict[str, Any]:
        """Словарь для send_json: camelCase, даты в ISO."""
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# СОБЫТИЯ ХАБА (сервер -> клиент)
# =============================================================================

class LocationUpdated(WireMessage):
    """Новая позиция партнёра."""
    type: Literal["locationUpdate"] = "locationUpdate"
    partner_id: int
    lat: float
    lng: float
    order_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


class OrderStatusChanged(WireMessage):
    """Новый статус заказа."""
    type: Literal["orderStatusUpdate"] = "orderStatusUpdate"
    order_id: str
    status: OrderStatus
    partner_id: Optional[int] = None
    timestamp: datetime = Field(default_factory=utc_now)


HubEvent = Union[LocationUpdated, OrderStatusChanged]


# =============================================================================
# СЛУЖЕБНЫЕ ОТВЕТЫ (сервер -> отправитель)
# =============================================================================

class Connected(WireMessage):
    type: Literal["connected"] = "connected"
    partner_id: int


class ErrorMessage(WireMessage):
    type: Literal["error"] = "error"
    code: str
    message: str


class Pong(WireMessage):
    type: Literal["pong"] = "pong"


# =============================================================================
# ВХОДЯЩИЕ (клиент -> сервер)
# =============================================================================

class ConnectMessage(WireMessage):
    type: Literal["connect"] = "connect"
    partner_id: int


class LocationSampleMessage(WireMessage):
    # Строки допускаются: мобильный клиент отправляет координаты строками
    type: Literal["locationSample"] = "locationSample"
    lat: Union[float, str]
    lng: Union[float, str]
    captured_at: Optional[datetime] = None


class OrderStatusUpdateMessage(WireMessage):
    type: Literal["orderStatusUpdate"] = "orderStatusUpdate"
    order_id: str
    status: str


class PingMessage(WireMessage):
    type: Literal["ping"] = "ping"


InboundMessage = Union[ConnectMessage, LocationSampleMessage, OrderStatusUpdateMessage, PingMessage]

INBOUND_TYPES: dict[str, type[WireMessage]] = {
    "connect": ConnectMessage,
    "locationSample": LocationSampleMessage,
    "orderStatusUpdate": OrderStatusUpdateMessage,
    "ping": PingMessage,
}


def parse_inbound(data: Any) -> InboundMessage:
    """
    Разбирает входящий кадр.

    Raises:
        ValueError: не объект, неизвестный type или не хватает полей
            (pydantic.ValidationError наследует ValueError)
    """
    if not isinstance(data, dict):
        raise ValueError("Сообщение должно быть JSON-объектом")
    model = INBOUND_TYPES.get(data.get("type"))  # type: ignore[arg-type]
    if model is None:
        raise ValueError(f"Неизвестный тип сообщения: {data.get('type')!r}")
    return model.model_validate(data)  # type: ignore[return-value]
