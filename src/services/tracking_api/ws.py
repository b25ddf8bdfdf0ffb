# src/services/tracking_api/ws.py
"""
WebSocket endpoint канала трекинга.

Протокол (JSON text frames с полем type):
- клиент: connect{partnerId}, locationSample{lat,lng,capturedAt?},
  orderStatusUpdate{orderId,status}, ping
- сервер: connected{partnerId}, locationUpdate{...}, orderStatusUpdate{...},
  error{code,message}, pong
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket

from src.core.orders.service import OrderService
from src.core.tracking.hub import BroadcastHub
from src.core.tracking.ingest import LocationIngestService
from src.core.tracking.session import ChannelSession
from src.services.tracking_api.dependencies import (
    get_broadcast_hub,
    get_ingest_service,
    get_order_service,
)

router = APIRouter()


@router.websocket("/ws")
async def tracking_channel(
    websocket: WebSocket,
    hub: BroadcastHub = Depends(get_broadcast_hub),
    ingest: LocationIngestService = Depends(get_ingest_service),
    orders: OrderService = Depends(get_order_service),
) -> None:
    """Одна сессия на подключение. Привязка к партнёру через connect{partnerId}."""
    await websocket.accept()
    session = ChannelSession(websocket, hub, ingest, orders)
    await session.run()
