# src/services/tracking_api/schemas.py
"""
Модели запросов и ответов API трекинга.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, Field

from src.core.partners.models import LocationSample


# === ЗАПРОСЫ ===

class LocationUpdateRequest(BaseModel):
    """
    Точка партнёра. Мобильный клиент отправляет координаты строками,
    поэтому строки принимаются и проверяются сервисом приёма.
    """
    latitude: Union[float, str] = Field(..., validation_alias=AliasChoices("latitude", "lat"))
    longitude: Union[float, str] = Field(..., validation_alias=AliasChoices("longitude", "lng"))
    captured_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("captured_at", "capturedAt"),
    )


class PartnerStatusRequest(BaseModel):
    is_online: bool = Field(..., validation_alias=AliasChoices("is_online", "isOnline"))


class PartnerProfileUpdate(BaseModel):
    """
    Частичное обновление профиля. Незаданные и null поля не меняются,
    посторонние ключи (id, phone, статистика) отбрасываются.
    """
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    vehicle_type: Optional[str] = Field(
        default=None, max_length=20, validation_alias=AliasChoices("vehicle_type", "vehicleType"),
    )

    def updates(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class OrderStatusRequest(BaseModel):
    status: str


# === ОТВЕТЫ ===

class LocationIngestResponse(BaseModel):
    success: bool = True
    applied: bool = True
    order_id: Optional[str] = None
    sample: LocationSample


class ErrorResponse(BaseModel):
    """Стандартный ответ с ошибкой."""
    error_code: str
    message: str
    details: dict[str, Any] | None = None


class HealthStatus(BaseModel):
    """Статус здоровья сервиса."""
    service: str
    status: str = "healthy"  # healthy, degraded, unhealthy
    version: str | None = None
    uptime_seconds: float | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
