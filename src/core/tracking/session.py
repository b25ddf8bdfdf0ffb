# src/core/tracking/session.py
"""
ChannelSession: одно WebSocket-подключение клиента.

Состояния: CONNECTING -> OPEN -> CLOSED (терминальное).
Сессия становится OPEN после connect{partnerId} и регистрации в хабе,
закрывается при обрыве транспорта или вытеснении новым подключением.
Новое подключение всегда создаёт новую сессию.
"""

from __future__ import annotations

import json
from typing import Any
from uuid import uuid4

from fastapi import WebSocket, WebSocketDisconnect

from src.common.constants import SessionState, TypeMsg
from src.common.exceptions import DeliveryError
from src.common.logger import log_info
from src.core.orders.service import OrderService
from src.core.tracking.hub import BroadcastHub
from src.core.tracking.ingest import LocationIngestService
from src.core.tracking.messages import (
    ConnectMessage,
    Connected,
    ErrorMessage,
    LocationSampleMessage,
    OrderStatusUpdateMessage,
    PingMessage,
    Pong,
    WireMessage,
    parse_inbound,
)


class ChannelSession:
    """Сессия канала трекинга поверх FastAPI WebSocket."""

    def __init__(
        self,
        websocket: WebSocket,
        hub: BroadcastHub,
        ingest: LocationIngestService,
        orders: OrderService,
    ) -> None:
        self.session_id = uuid4().hex
        self.partner_id: int | None = None
        self.state = SessionState.CONNECTING
        self._ws = websocket
        self._hub = hub
        self._ingest = ingest
        self._orders = orders

    def __repr__(self) -> str:
        return f"<ChannelSession {self.session_id} partner={self.partner_id} state={self.state.value}>"

    @property
    def is_open(self) -> bool:
        return self.state == SessionState.OPEN

    def mark_closed(self) -> None:
        """Переводит сессию в CLOSED без закрытия транспорта."""
        self.state = SessionState.CLOSED

    # =========================================================================
    # ИСХОДЯЩИЕ
    # =========================================================================

    async def push(self, message: dict[str, Any]) -> bool:
        """
        Отправляет событие хаба как есть.
        Вне OPEN ничего не делает.

        Returns:
            True, если кадр передан транспорту
        """
        if self.state != SessionState.OPEN:
            return False
        return await self._send(message)

    async def _reply(self, message: WireMessage) -> None:
        # Ответы отправителю допустимы и до connect (pong, ошибки)
        if self.state != SessionState.CLOSED:
            await self._send(message.to_wire())

    async def _send(self, payload: dict[str, Any]) -> bool:
        try:
            await self._ws.send_json(payload)
            return True
        except (WebSocketDisconnect, RuntimeError, ConnectionError, OSError) as e:
            await log_info(f"Отправка в сессию {self.session_id} не удалась: {e}", type_msg=TypeMsg.DEBUG)
            return False

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Закрывает транспорт. Повторный вызов безопасен."""
        self.state = SessionState.CLOSED
        try:
            await self._ws.close(code=code, reason=reason)
        except (RuntimeError, ConnectionError, OSError) as e:
            # Транспорт уже закрыт клиентом
            await log_info(f"Сессия {self.session_id} уже закрыта: {e}", type_msg=TypeMsg.DEBUG)

    # =========================================================================
    # ВХОДЯЩИЕ
    # =========================================================================

    async def run(self) -> None:
        """Цикл чтения до обрыва транспорта. WebSocket должен быть уже принят."""
        try:
            while self.state != SessionState.CLOSED:
                raw = await self._ws.receive_text()
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    await log_info(
                        f"Сессия {self.session_id}: кадр не является JSON, отброшен",
                        type_msg=TypeMsg.WARNING,
                    )
                    continue
                await self.handle(data)
        except WebSocketDisconnect:
            pass
        except RuntimeError as e:
            # Starlette: чтение после закрытия (например, после вытеснения)
            await log_info(f"Сессия {self.session_id}: транспорт закрыт ({e})", type_msg=TypeMsg.DEBUG)
        finally:
            await self.on_transport_closed()

    async def on_transport_closed(self) -> None:
        self.state = SessionState.CLOSED
        await self._hub.unregister(self)
        await log_info(f"Сессия {self.session_id} партнёра {self.partner_id} закрыта", type_msg=TypeMsg.DEBUG)

    async def handle(self, data: Any) -> None:
        """
        Обрабатывает один входящий кадр.
        Некорректные кадры логируются и отбрасываются, сессия остаётся открытой.
        Отказы домена уходят отправителю как error{code,message}.
        """
        if self.state == SessionState.CLOSED:
            return

        try:
            message = parse_inbound(data)
        except ValueError as e:
            await log_info(f"Сессия {self.session_id}: некорректное сообщение отброшено: {e}", type_msg=TypeMsg.WARNING)
            return

        if isinstance(message, PingMessage):
            await self._reply(Pong())
            return

        if isinstance(message, ConnectMessage):
            await self._bind(message.partner_id)
            return

        if self.state != SessionState.OPEN or self.partner_id is None:
            await log_info(
                f"Сессия {self.session_id}: {message.type} до connect, отброшено",
                type_msg=TypeMsg.WARNING,
            )
            return

        try:
            if isinstance(message, LocationSampleMessage):
                await self._ingest.ingest(self.partner_id, message.lat, message.lng, message.captured_at)
            elif isinstance(message, OrderStatusUpdateMessage):
                await self._orders.transition(message.order_id, message.status, self.partner_id)
        except DeliveryError as e:
            await log_info(
                f"Сессия {self.session_id}: {message.type} отклонено ({e.code.value}): {e.message}",
                type_msg=TypeMsg.INFO,
            )
            await self._reply(ErrorMessage(code=e.code.value, message=e.message))

    async def _bind(self, partner_id: int) -> None:
        """Привязка (и повторная привязка) к партнёру."""
        self.partner_id = partner_id
        self.state = SessionState.OPEN
        await self._hub.register(partner_id, self)
        await log_info(f"Сессия {self.session_id} привязана к партнёру {partner_id}", type_msg=TypeMsg.DEBUG)
        await self._reply(Connected(partner_id=partner_id))
