# src/services/tracking_api/routes.py
"""
REST API партнёра доставки.
Доменные ошибки (DeliveryError) преобразуются в ErrorResponse обработчиком приложения.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.core.orders.models import Earning, EarningsSummary, Order
from src.core.orders.service import OrderService
from src.core.partners.models import LocationSample, NearbyPartner, Partner
from src.core.partners.service import PartnerService
from src.core.tracking.ingest import LocationIngestService
from src.services.tracking_api.dependencies import (
    get_ingest_service,
    get_order_service,
    get_partner_id,
    get_partner_service,
)
from src.services.tracking_api.schemas import (
    LocationIngestResponse,
    LocationUpdateRequest,
    OrderStatusRequest,
    PartnerProfileUpdate,
    PartnerStatusRequest,
)

router = APIRouter()


# === ПАРТНЁР ===

@router.post("/partner/location", response_model=LocationIngestResponse, tags=["Partner"])
async def update_location(
    request: LocationUpdateRequest,
    partner_id: int = Depends(get_partner_id),
    ingest: LocationIngestService = Depends(get_ingest_service),
) -> LocationIngestResponse:
    """Приём одной точки партнёра: журнал, текущая позиция, рассылка."""
    result = await ingest.ingest(partner_id, request.latitude, request.longitude, request.captured_at)
    return LocationIngestResponse(
        applied=result.applied,
        order_id=result.order_id,
        sample=result.sample,
    )


@router.get("/partner/locations", response_model=list[LocationSample], tags=["Partner"])
async def get_recent_locations(
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    partner_id: int = Depends(get_partner_id),
    service: PartnerService = Depends(get_partner_service),
) -> list[LocationSample]:
    return await service.get_recent_locations(partner_id, limit)


@router.get("/partner/profile", response_model=Partner, tags=["Partner"])
async def get_profile(
    partner_id: int = Depends(get_partner_id),
    service: PartnerService = Depends(get_partner_service),
) -> Partner:
    return await service.get_profile(partner_id)


@router.patch("/partner/profile", response_model=Partner, tags=["Partner"])
async def update_profile(
    request: PartnerProfileUpdate,
    partner_id: int = Depends(get_partner_id),
    service: PartnerService = Depends(get_partner_service),
) -> Partner:
    """Партнёр меняет имя, email и тип транспорта."""
    return await service.update_profile(partner_id, request.updates())


@router.patch("/partner/status", response_model=Partner, tags=["Partner"])
async def set_status(
    request: PartnerStatusRequest,
    partner_id: int = Depends(get_partner_id),
    service: PartnerService = Depends(get_partner_service),
) -> Partner:
    return await service.set_online(partner_id, request.is_online)


@router.get("/partners/nearby", response_model=list[NearbyPartner], tags=["Dispatch"])
async def get_nearby_partners(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(default=None, gt=0, le=50),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    _: int = Depends(get_partner_id),
    service: PartnerService = Depends(get_partner_service),
) -> list[NearbyPartner]:
    """Партнёры на линии рядом с точкой (для диспетчера)."""
    return await service.find_nearby(lat, lng, radius_km, limit)


# === ЗАКАЗЫ ===

@router.get("/orders/available", response_model=list[Order], tags=["Orders"])
async def get_available_orders(
    limit: int = Query(default=50, ge=1, le=100),
    _: int = Depends(get_partner_id),
    service: OrderService = Depends(get_order_service),
) -> list[Order]:
    return await service.get_available(limit)


@router.get("/orders/active", response_model=Optional[Order], tags=["Orders"])
async def get_active_order(
    partner_id: int = Depends(get_partner_id),
    service: OrderService = Depends(get_order_service),
) -> Optional[Order]:
    return await service.get_active(partner_id)


@router.get("/orders/history", response_model=list[Order], tags=["Orders"])
async def get_order_history(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    partner_id: int = Depends(get_partner_id),
    service: OrderService = Depends(get_order_service),
) -> list[Order]:
    return await service.get_history(partner_id, limit, offset)


@router.patch("/orders/{order_id}/accept", response_model=Order, tags=["Orders"])
async def accept_order(
    order_id: str,
    partner_id: int = Depends(get_partner_id),
    service: OrderService = Depends(get_order_service),
) -> Order:
    return await service.accept(order_id, partner_id)


@router.patch("/orders/{order_id}/status", response_model=Order, tags=["Orders"])
async def update_order_status(
    order_id: str,
    request: OrderStatusRequest,
    partner_id: int = Depends(get_partner_id),
    service: OrderService = Depends(get_order_service),
) -> Order:
    return await service.transition(order_id, request.status, partner_id)


# === ЗАРАБОТОК ===

@router.get("/earnings/today", response_model=EarningsSummary, tags=["Earnings"])
async def get_today_earnings(
    partner_id: int = Depends(get_partner_id),
    service: OrderService = Depends(get_order_service),
) -> EarningsSummary:
    return await service.get_today_earnings(partner_id)


@router.get("/earnings/history", response_model=list[Earning], tags=["Earnings"])
async def get_earnings_history(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    partner_id: int = Depends(get_partner_id),
    service: OrderService = Depends(get_order_service),
) -> list[Earning]:
    return await service.get_earnings_history(partner_id, limit, offset)
