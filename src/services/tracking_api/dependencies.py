# src/services/tracking_api/dependencies.py
"""
Зависимости FastAPI: идентификация партнёра и сервисы процесса.

Сервисы создаются один раз на процесс: замки переходов заказов
и реестр сессий должны быть общими для всех запросов.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, status

from src.common.constants import PARTNER_ID_HEADER
from src.core.orders.service import OrderService
from src.core.partners.service import PartnerService
from src.core.tracking.hub import BroadcastHub, get_hub
from src.core.tracking.ingest import LocationIngestService
from src.core.tracking.presence import PresenceCache
from src.infra.database import get_db
from src.infra.event_bus import get_event_bus
from src.infra.redis_client import get_redis


_order_service: OrderService | None = None
_ingest_service: LocationIngestService | None = None
_partner_service: PartnerService | None = None


def get_partner_id(
    x_partner_id: str | None = Header(default=None, alias=PARTNER_ID_HEADER),
) -> int:
    """
    ID партнёра из заголовка X-Partner-Id.
    Аутентификация выполняется внешним шлюзом до этого сервиса.
    """
    if not x_partner_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Partner id required")
    try:
        partner_id = int(x_partner_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid partner id") from None
    if partner_id <= 0:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid partner id")
    return partner_id


def get_broadcast_hub() -> BroadcastHub:
    return get_hub()


def get_presence() -> PresenceCache | None:
    """Кэш присутствия, если Redis подключён."""
    redis = get_redis()
    if not redis.is_connected:
        return None
    return PresenceCache(redis)


def get_order_service() -> OrderService:
    global _order_service
    if _order_service is None:
        _order_service = OrderService(get_db(), get_hub(), get_event_bus())
    return _order_service


def get_ingest_service() -> LocationIngestService:
    global _ingest_service
    if _ingest_service is None:
        _ingest_service = LocationIngestService(get_db(), get_hub(), presence=get_presence())
    return _ingest_service


def get_partner_service() -> PartnerService:
    global _partner_service
    if _partner_service is None:
        _partner_service = PartnerService(get_db(), presence=get_presence(), event_bus=get_event_bus())
    return _partner_service


def reset_services() -> None:
    """Сбрасывает сервисы процесса (при остановке приложения)."""
    global _order_service, _ingest_service, _partner_service
    _order_service = None
    _ingest_service = None
    _partner_service = None
