# tests/core/test_messages.py
"""
Тесты сообщений канала трекинга.
"""

from __future__ import annotations

import pytest

from src.common.constants import OrderStatus
from src.core.tracking.messages import (
    ConnectMessage,
    Connected,
    ErrorMessage,
    LocationSampleMessage,
    LocationUpdated,
    OrderStatusChanged,
    OrderStatusUpdateMessage,
    PingMessage,
    parse_inbound,
)


class TestOutbound:

    def test_location_update_wire_format(self, now) -> None:
        wire = LocationUpdated(partner_id=42, lat=12.97, lng=77.59, order_id="abc", timestamp=now).to_wire()

        assert wire == {
            "type": "locationUpdate",
            "partnerId": 42,
            "lat": 12.97,
            "lng": 77.59,
            "orderId": "abc",
            "timestamp": "2025-03-14T09:30:00Z",
        }

    def test_order_status_wire_format(self) -> None:
        wire = OrderStatusChanged(order_id="abc", status=OrderStatus.PICKED_UP, partner_id=42).to_wire()

        assert wire["type"] == "orderStatusUpdate"
        assert wire["orderId"] == "abc"
        assert wire["status"] == "picked_up"
        assert wire["partnerId"] == 42

    def test_service_replies(self) -> None:
        assert Connected(partner_id=42).to_wire() == {"type": "connected", "partnerId": 42}
        assert ErrorMessage(code="NOT_FOUND", message="нет").to_wire()["code"] == "NOT_FOUND"


class TestParseInbound:

    def test_connect(self) -> None:
        message = parse_inbound({"type": "connect", "partnerId": 42})
        assert isinstance(message, ConnectMessage)
        assert message.partner_id == 42

    def test_location_sample_with_strings(self) -> None:
        message = parse_inbound({"type": "locationSample", "lat": "12.97", "lng": 77.59})
        assert isinstance(message, LocationSampleMessage)
        assert message.lat == "12.97"
        assert message.captured_at is None

    def test_location_sample_with_timestamp(self) -> None:
        message = parse_inbound(
            {"type": "locationSample", "lat": 1, "lng": 2, "capturedAt": "2025-03-14T09:30:00+00:00"}
        )
        assert message.captured_at.year == 2025

    def test_order_status_update(self) -> None:
        message = parse_inbound({"type": "orderStatusUpdate", "orderId": "abc", "status": "picked_up"})
        assert isinstance(message, OrderStatusUpdateMessage)
        assert message.order_id == "abc"

    def test_ping(self) -> None:
        assert isinstance(parse_inbound({"type": "ping"}), PingMessage)

    @pytest.mark.parametrize(
        "data",
        [
            ["not", "an", "object"],
            {"type": "teleport"},
            {"lat": 1, "lng": 2},
            {"type": "connect"},
            {"type": "locationSample", "lat": 1},
        ],
    )
    def test_invalid(self, data) -> None:
        with pytest.raises(ValueError):
            parse_inbound(data)
