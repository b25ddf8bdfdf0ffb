# tests/core/test_session.py
"""
Тесты ChannelSession поверх WebSocket-заглушки.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi import WebSocketDisconnect

from src.common.constants import SessionState, WS_CLOSE_SUPERSEDED
from src.common.exceptions import ForbiddenError, ValidationError
from src.core.orders.service import OrderService
from src.core.tracking.hub import BroadcastHub
from src.core.tracking.messages import LocationUpdated
from src.core.tracking.session import ChannelSession


class FakeWebSocket:
    """Минимальная замена starlette WebSocket."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed_with: tuple[int, str] | None = None
        self.fail_send = False
        self._incoming: asyncio.Queue[str | None] = asyncio.Queue()

    def feed(self, *frames: Any) -> None:
        for frame in frames:
            self._incoming.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def disconnect(self) -> None:
        self._incoming.put_nowait(None)

    async def receive_text(self) -> str:
        frame = await self._incoming.get()
        if frame is None:
            raise WebSocketDisconnect(code=1001)
        return frame

    async def send_json(self, payload: dict[str, Any]) -> None:
        if self.fail_send:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        self.sent.append(payload)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = (code, reason)

    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub()


@pytest.fixture
def ingest() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def orders() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def websocket() -> FakeWebSocket:
    return FakeWebSocket()


@pytest.fixture
def session(websocket: FakeWebSocket, hub: BroadcastHub, ingest: AsyncMock, orders: AsyncMock) -> ChannelSession:
    return ChannelSession(websocket, hub, ingest, orders)


class TestHandshake:

    async def test_initial_state(self, session: ChannelSession) -> None:
        assert session.state == SessionState.CONNECTING
        assert session.is_open is False

    async def test_ping_before_connect(self, session: ChannelSession, websocket: FakeWebSocket) -> None:
        await session.handle({"type": "ping"})
        assert websocket.types() == ["pong"]

    async def test_connect_binds_partner(
        self, session: ChannelSession, websocket: FakeWebSocket, hub: BroadcastHub,
    ) -> None:
        await session.handle({"type": "connect", "partnerId": 42})

        assert session.state == SessionState.OPEN
        assert session.partner_id == 42
        assert await hub.is_registered(session)
        assert websocket.sent == [{"type": "connected", "partnerId": 42}]

    async def test_messages_before_connect_dropped(
        self, session: ChannelSession, websocket: FakeWebSocket, ingest: AsyncMock, orders: AsyncMock,
    ) -> None:
        await session.handle({"type": "locationSample", "lat": 12.97, "lng": 77.59})
        await session.handle({"type": "orderStatusUpdate", "orderId": "abc", "status": "picked_up"})

        ingest.ingest.assert_not_called()
        orders.transition.assert_not_called()
        assert websocket.sent == []

    async def test_invalid_frame_keeps_session_open(
        self, session: ChannelSession, websocket: FakeWebSocket,
    ) -> None:
        await session.handle({"type": "connect", "partnerId": 42})
        await session.handle({"type": "teleport"})
        await session.handle("garbage")

        assert session.is_open
        assert websocket.types() == ["connected"]


class TestDispatch:

    @pytest.fixture
    async def bound(self, session: ChannelSession, websocket: FakeWebSocket) -> ChannelSession:
        await session.handle({"type": "connect", "partnerId": 42})
        websocket.sent.clear()
        return session

    async def test_location_sample_ingested(self, bound: ChannelSession, ingest: AsyncMock) -> None:
        await bound.handle({"type": "locationSample", "lat": "12.97", "lng": 77.59})
        ingest.ingest.assert_awaited_once_with(42, "12.97", 77.59, None)

    async def test_status_update_uses_bound_partner(self, bound: ChannelSession, orders: AsyncMock) -> None:
        await bound.handle({"type": "orderStatusUpdate", "orderId": "abc", "status": "picked_up"})
        orders.transition.assert_awaited_once_with("abc", "picked_up", 42)

    async def test_domain_error_replied(
        self, bound: ChannelSession, websocket: FakeWebSocket, orders: AsyncMock,
    ) -> None:
        orders.transition.side_effect = ForbiddenError("Заказ назначен другому партнёру")

        await bound.handle({"type": "orderStatusUpdate", "orderId": "abc", "status": "delivered"})

        assert websocket.sent == [
            {"type": "error", "code": "forbidden", "message": "Заказ назначен другому партнёру"},
        ]
        assert bound.is_open

    async def test_malformed_order_id_replied_as_not_found(
        self, websocket: FakeWebSocket, hub: BroadcastHub, ingest: AsyncMock, mock_db: AsyncMock,
    ) -> None:
        session = ChannelSession(websocket, hub, ingest, OrderService(mock_db, hub))
        await session.handle({"type": "connect", "partnerId": 42})
        websocket.sent.clear()

        await session.handle({"type": "orderStatusUpdate", "orderId": "abc", "status": "picked_up"})

        assert websocket.sent[0]["type"] == "error"
        assert websocket.sent[0]["code"] == "not_found"
        mock_db.transaction.assert_not_called()
        assert session.is_open

    async def test_validation_error_replied(
        self, bound: ChannelSession, websocket: FakeWebSocket, ingest: AsyncMock,
    ) -> None:
        ingest.ingest.side_effect = ValidationError("latitude вне допустимого диапазона")

        await bound.handle({"type": "locationSample", "lat": 95, "lng": 77.59})

        assert websocket.sent[0]["code"] == "validation_error"

    async def test_rebind_to_other_partner(self, bound: ChannelSession, hub: BroadcastHub) -> None:
        await bound.handle({"type": "connect", "partnerId": 7})

        assert bound.partner_id == 7
        assert hub.active_sessions == 1


class TestOutbound:

    async def test_push_only_when_open(self, session: ChannelSession, websocket: FakeWebSocket) -> None:
        event = LocationUpdated(partner_id=7, lat=1.0, lng=2.0).to_wire()

        assert await session.push(event) is False

        await session.handle({"type": "connect", "partnerId": 42})
        assert await session.push(event) is True
        assert websocket.sent[-1]["type"] == "locationUpdate"

    async def test_push_failure_reported(self, session: ChannelSession, websocket: FakeWebSocket) -> None:
        await session.handle({"type": "connect", "partnerId": 42})
        websocket.fail_send = True

        assert await session.push({"type": "locationUpdate"}) is False

    async def test_closed_session_ignores_frames(
        self, session: ChannelSession, websocket: FakeWebSocket, ingest: AsyncMock,
    ) -> None:
        await session.handle({"type": "connect", "partnerId": 42})
        await session.close()
        websocket.sent.clear()

        await session.handle({"type": "ping"})
        await session.handle({"type": "locationSample", "lat": 1, "lng": 2})

        assert websocket.sent == []
        ingest.ingest.assert_not_called()
        assert await session.push({"type": "locationUpdate"}) is False

    async def test_eviction_by_new_session(
        self, hub: BroadcastHub, ingest: AsyncMock, orders: AsyncMock,
    ) -> None:
        first_ws, second_ws = FakeWebSocket(), FakeWebSocket()
        first = ChannelSession(first_ws, hub, ingest, orders)
        second = ChannelSession(second_ws, hub, ingest, orders)

        await first.handle({"type": "connect", "partnerId": 42})
        await second.handle({"type": "connect", "partnerId": 42})

        assert first.state == SessionState.CLOSED
        assert first_ws.closed_with == (WS_CLOSE_SUPERSEDED, "superseded")
        assert second.is_open


class TestRunLoop:

    async def test_run_until_disconnect(
        self, session: ChannelSession, websocket: FakeWebSocket, hub: BroadcastHub, ingest: AsyncMock,
    ) -> None:
        websocket.feed(
            {"type": "connect", "partnerId": 42},
            "{not json",
            {"type": "locationSample", "lat": 12.97, "lng": 77.59},
            {"type": "ping"},
        )
        websocket.disconnect()

        await session.run()

        assert websocket.types() == ["connected", "pong"]
        ingest.ingest.assert_awaited_once()
        assert session.state == SessionState.CLOSED
        assert hub.active_sessions == 0

    async def test_run_stops_on_closed_transport(
        self, session: ChannelSession, hub: BroadcastHub,
    ) -> None:
        session._ws.receive_text = AsyncMock(side_effect=RuntimeError("WebSocket is not connected"))

        await session.run()

        assert session.state == SessionState.CLOSED
        assert hub.active_sessions == 0
