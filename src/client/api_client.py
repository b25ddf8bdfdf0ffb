# src/client/api_client.py
"""
Транспорты клиента партнёра до API трекинга.
HTTP (httpx) для ingest и WebSocket (websockets) для канала трекинга.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import httpx
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from src.common.constants import PARTNER_ID_HEADER, TypeMsg
from src.common.exceptions import TransportError
from src.common.logger import log_error, log_info


MessageHandler = Callable[[dict[str, Any]], Awaitable[None]]


class TrackingApiClient:
    """HTTP-клиент API трекинга от имени одного партнёра."""

    def __init__(
        self,
        partner_id: int,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if base_url is None or timeout is None:
            from src.config import settings
            base_url = base_url or settings.client.API_BASE_URL
            timeout = timeout or settings.client.REQUEST_TIMEOUT
        self.partner_id = partner_id
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=f"{self.base_url}/api/v1",
            timeout=timeout,
            headers={PARTNER_ID_HEADER: str(partner_id)},
            transport=transport,
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, path: str, json_body: Optional[dict[str, Any]] = None) -> Any:
        response = await self.client.request(method, path, json=json_body)
        response.raise_for_status()
        return response.json()

    async def post_location(self, latitude: float, longitude: float, captured_at: datetime) -> dict[str, Any]:
        """
        Отправляет точку в ingest.

        Raises:
            httpx.HTTPStatusError: сервер отклонил точку
            httpx.RequestError: сетевая ошибка или таймаут
        """
        return await self._request("POST", "/partner/location", {
            "latitude": latitude,
            "longitude": longitude,
            "captured_at": captured_at.isoformat(),
        })

    async def set_online(self, is_online: bool) -> dict[str, Any]:
        return await self._request("PATCH", "/partner/status", {"is_online": is_online})


class TrackingChannel:
    """
    WebSocket-канал трекинга от имени партнёра.
    Подключается лениво при первой отправке, после обрыва переподключается
    на следующей отправке. Входящие события передаются в on_message.
    """

    def __init__(
        self,
        partner_id: int,
        url: str | None = None,
        on_message: MessageHandler | None = None,
    ) -> None:
        if url is None:
            from src.config import settings
            url = settings.client.WS_URL
        self.partner_id = partner_id
        self.url = url
        self._on_message = on_message
        self._ws: Any = None
        self._reader: asyncio.Task | None = None
        self._connect_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        """Открывает соединение и привязывает его к партнёру (connect{partnerId})."""
        async with self._connect_lock:
            if self._ws is not None:
                return
            try:
                ws = await websockets.connect(self.url)
            except (WebSocketException, OSError) as e:
                raise TransportError(f"Не удалось подключиться к {self.url}: {e}") from e
            try:
                await ws.send(json.dumps({"type": "connect", "partnerId": self.partner_id}))
            except (WebSocketException, OSError) as e:
                await ws.close()
                raise TransportError(f"Не удалось привязать канал к партнёру {self.partner_id}: {e}") from e
            self._ws = ws
            self._reader = asyncio.create_task(self._read_loop(ws), name=f"tracking_channel_{self.partner_id}")
            await log_info(f"Канал трекинга подключён: {self.url}", type_msg=TypeMsg.DEBUG)

    async def send(self, message: dict[str, Any]) -> None:
        """
        Отправляет сообщение, при необходимости подключаясь.

        Raises:
            TransportError: соединение недоступно или оборвалось
        """
        await self.connect()
        try:
            await self._ws.send(json.dumps(message, default=str))
        except (ConnectionClosed, WebSocketException, OSError) as e:
            await self._drop()
            raise TransportError(f"Отправка в канал не удалась: {e}") from e

    async def send_sample(self, latitude: float, longitude: float, captured_at: datetime) -> None:
        await self.send({
            "type": "locationSample",
            "lat": latitude,
            "lng": longitude,
            "capturedAt": captured_at.isoformat(),
        })

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    continue
                if self._on_message is None:
                    continue
                try:
                    await self._on_message(data)
                except Exception as e:
                    # Ошибка обработчика не рвёт чтение канала
                    await log_error(f"Обработчик сообщений канала упал: {e}", exc_info=True)
        except ConnectionClosed as e:
            await log_info(f"Канал трекинга закрыт сервером: {e}", type_msg=TypeMsg.DEBUG)
        finally:
            if self._ws is ws:
                self._ws = None

    async def _drop(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()

    async def close(self) -> None:
        await self._drop()
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
