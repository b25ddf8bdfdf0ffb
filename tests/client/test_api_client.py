# tests/client/test_api_client.py
"""
Тесты HTTP-клиента и WebSocket-канала партнёра.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from websockets.exceptions import ConnectionClosedOK, InvalidURI

from src.client.api_client import TrackingApiClient, TrackingChannel
from src.common.exceptions import TransportError


# =============================================================================
# HTTP
# =============================================================================

class TestTrackingApiClient:

    @pytest.fixture
    def requests(self) -> list[httpx.Request]:
        return []

    def _client(self, requests: list[httpx.Request], status: int = 200) -> TrackingApiClient:
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(status, json={"ok": status < 400})

        return TrackingApiClient(
            42,
            base_url="http://api.test/",
            timeout=5.0,
            transport=httpx.MockTransport(handler),
        )

    async def test_post_location(self, requests: list[httpx.Request]) -> None:
        client = self._client(requests)
        captured_at = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)

        assert await client.post_location(12.97, 77.59, captured_at) == {"ok": True}
        await client.close()

        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == "http://api.test/api/v1/partner/location"
        assert request.headers["X-Partner-Id"] == "42"
        assert json.loads(request.content) == {
            "latitude": 12.97,
            "longitude": 77.59,
            "captured_at": "2025-03-14T09:30:00+00:00",
        }

    async def test_set_online(self, requests: list[httpx.Request]) -> None:
        client = self._client(requests)

        await client.set_online(False)
        await client.close()

        assert requests[0].method == "PATCH"
        assert json.loads(requests[0].content) == {"is_online": False}

    async def test_rejected_point_raises(self, requests: list[httpx.Request]) -> None:
        client = self._client(requests, status=422)

        with pytest.raises(httpx.HTTPStatusError):
            await client.post_location(95.0, 77.59, datetime.now(timezone.utc))
        await client.close()


# =============================================================================
# WEBSOCKET
# =============================================================================

class FakeConnection:
    """Замена клиентского соединения websockets."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.fail_send = False
        self._incoming: asyncio.Queue[str | None] = asyncio.Queue()

    def feed(self, message: dict[str, Any]) -> None:
        self._incoming.put_nowait(json.dumps(message))

    def finish(self) -> None:
        self._incoming.put_nowait(None)

    async def send(self, raw: str) -> None:
        if self.fail_send:
            raise ConnectionClosedOK(None, None)
        self.sent.append(json.loads(raw))

    async def close(self) -> None:
        self.closed = True
        self.finish()

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        raw = await self._incoming.get()
        if raw is None:
            raise StopAsyncIteration
        return raw


class TestTrackingChannel:

    @pytest.fixture
    def connection(self) -> FakeConnection:
        return FakeConnection()

    @pytest.fixture
    def connect_mock(self, connection: FakeConnection):
        with patch("src.client.api_client.websockets.connect", new=AsyncMock(return_value=connection)) as mock:
            yield mock

    async def test_send_connects_and_binds(self, connection: FakeConnection, connect_mock: AsyncMock) -> None:
        channel = TrackingChannel(42, url="ws://api.test/ws")

        await channel.send_sample(12.97, 77.59, datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc))
        await channel.send({"type": "ping"})

        connect_mock.assert_awaited_once_with("ws://api.test/ws")
        assert connection.sent[0] == {"type": "connect", "partnerId": 42}
        assert connection.sent[1] == {
            "type": "locationSample",
            "lat": 12.97,
            "lng": 77.59,
            "capturedAt": "2025-03-14T09:30:00+00:00",
        }
        assert connection.sent[2] == {"type": "ping"}
        await channel.close()

    async def test_incoming_messages_delivered(self, connection: FakeConnection, connect_mock: AsyncMock) -> None:
        received: list[dict[str, Any]] = []
        got_message = asyncio.Event()

        async def on_message(data: dict[str, Any]) -> None:
            received.append(data)
            got_message.set()

        channel = TrackingChannel(42, url="ws://api.test/ws", on_message=on_message)
        await channel.connect()
        connection.feed({"type": "connected", "partnerId": 42})

        await asyncio.wait_for(got_message.wait(), timeout=1.0)
        assert received == [{"type": "connected", "partnerId": 42}]
        await channel.close()

    async def test_handler_error_keeps_reading(self, connection: FakeConnection, connect_mock: AsyncMock) -> None:
        received: list[dict[str, Any]] = []
        second = asyncio.Event()

        async def on_message(data: dict[str, Any]) -> None:
            if data["type"] == "connected":
                raise KeyError("orderId")
            received.append(data)
            second.set()

        channel = TrackingChannel(42, url="ws://api.test/ws", on_message=on_message)
        await channel.connect()
        connection.feed({"type": "connected", "partnerId": 42})
        connection.feed({"type": "locationUpdated", "partnerId": 42, "lat": 12.97, "lng": 77.59})

        await asyncio.wait_for(second.wait(), timeout=1.0)
        assert [m["type"] for m in received] == ["locationUpdated"]
        assert channel.is_connected
        assert not channel._reader.done()
        await channel.close()

    async def test_server_close_marks_disconnected(self, connection: FakeConnection, connect_mock: AsyncMock) -> None:
        channel = TrackingChannel(42, url="ws://api.test/ws")
        await channel.connect()
        assert channel.is_connected

        connection.finish()
        await asyncio.wait_for(channel._reader, timeout=1.0)

        assert channel.is_connected is False
        await channel.close()

    async def test_send_failure_raises_transport_error(
        self, connection: FakeConnection, connect_mock: AsyncMock,
    ) -> None:
        channel = TrackingChannel(42, url="ws://api.test/ws")
        await channel.connect()
        connection.fail_send = True

        with pytest.raises(TransportError):
            await channel.send({"type": "ping"})

        assert channel.is_connected is False
        assert connection.closed
        await channel.close()

    async def test_connect_failure(self) -> None:
        failing = AsyncMock(side_effect=OSError("connection refused"))
        with patch("src.client.api_client.websockets.connect", new=failing):
            channel = TrackingChannel(42, url="ws://api.test/ws")
            with pytest.raises(TransportError):
                await channel.connect()

        assert channel.is_connected is False

    async def test_bind_failure_closes_connection(
        self, connection: FakeConnection, connect_mock: AsyncMock,
    ) -> None:
        connection.fail_send = True
        channel = TrackingChannel(42, url="ws://api.test/ws")

        with pytest.raises(TransportError):
            await channel.connect()

        assert connection.closed
        assert channel.is_connected is False
        assert channel._reader is None

    async def test_invalid_uri(self) -> None:
        failing = AsyncMock(side_effect=InvalidURI("nope", "not a websocket URI"))
        with patch("src.client.api_client.websockets.connect", new=failing):
            with pytest.raises(TransportError):
                await TrackingChannel(42, url="nope").connect()
