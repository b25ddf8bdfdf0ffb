# src/core/partners/models.py
"""
Модели данных партнёров доставки.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.common.timezone import utc_now


class Partner(BaseModel):
    """Партнёр доставки с денормализованной текущей позицией."""

    id: int = Field(..., description="ID партнёра")
    name: str = Field(..., description="Имя")
    email: Optional[str] = Field(None, description="Email")
    phone: str = Field(..., description="Номер телефона")
    vehicle_type: str = Field("bike", description="Тип транспорта")

    is_online: bool = Field(False, description="На линии ли партнёр")

    # Текущая позиция (обновляется только через ingest)
    current_latitude: Optional[float] = Field(None, ge=-90.0, le=90.0, description="Текущая широта")
    current_longitude: Optional[float] = Field(None, ge=-180.0, le=180.0, description="Текущая долгота")
    position_updated_at: Optional[datetime] = Field(None, description="Время фиксации текущей позиции")

    # Статистика
    rating: float = Field(5.0, ge=0.0, le=5.0, description="Рейтинг")
    total_deliveries: int = Field(0, ge=0, description="Выполнено доставок")
    total_earnings: float = Field(0.0, ge=0.0, description="Общий заработок")

    created_at: datetime = Field(default_factory=utc_now, description="Дата регистрации")
    updated_at: datetime = Field(default_factory=utc_now, description="Дата обновления")

    class Config:
        from_attributes = True

    @property
    def current_position(self) -> tuple[float, float] | None:
        """(lat, lng) или None, если позиция ещё не известна."""
        if self.current_latitude is None or self.current_longitude is None:
            return None
        return self.current_latitude, self.current_longitude


class LocationSample(BaseModel):
    """Неизменяемая запись наблюдённой позиции."""

    id: int = Field(..., description="ID записи")
    partner_id: int = Field(..., description="ID партнёра")
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    captured_at: datetime = Field(..., description="Время фиксации координат")

    class Config:
        from_attributes = True
        frozen = True


class NearbyPartner(BaseModel):
    """Партнёр рядом с точкой (для диспетчера)."""

    partner_id: int
    distance_km: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    name: Optional[str] = None
