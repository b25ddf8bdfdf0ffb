# src/core/tracking/ingest.py
"""
Приём координат партнёра.

В одной транзакции: запись в журнал partner_locations и перезапись
текущей позиции партнёра. После коммита: кэш присутствия (best effort)
и рассылка LocationUpdated через хаб. Повторов на этом уровне нет,
следующий цикл сэмплера перекрывает потерянную точку.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel
from redis.exceptions import RedisError

from src.common.constants import TypeMsg
from src.common.exceptions import NotFoundError, ValidationError
from src.common.logger import log_info
from src.common.timezone import utc_now
from src.core.orders.repository import OrderRepository
from src.core.partners.models import LocationSample
from src.core.partners.repository import PartnerRepository
from src.core.tracking.hub import BroadcastHub
from src.core.tracking.messages import LocationUpdated
from src.core.tracking.presence import PresenceCache
from src.infra.database import DatabaseManager, persistence_errors


class IngestResult(BaseModel):
    """Результат приёма одной точки."""

    sample: LocationSample
    # False: точка сохранена в журнал, но старее текущей позиции и не применена
    applied: bool = True
    order_id: Optional[str] = None


def _parse_coordinate(value: Any, name: str, bound: float) -> float:
    # bool наследует int, но координатой не является
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{name} обязателен и должен быть числом", details={"field": name})
    if isinstance(value, str):
        value = value.strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} должен быть числом", details={"field": name, "value": str(value)}) from None
    if not math.isfinite(number) or not -bound <= number <= bound:
        raise ValidationError(
            f"{name} вне допустимого диапазона [-{bound:g}, {bound:g}]",
            details={"field": name, "value": number},
        )
    return number


def validate_coordinates(latitude: Any, longitude: Any) -> tuple[float, float]:
    """
    Проверяет координаты. Числовые строки допускаются.

    Raises:
        ValidationError: нет значения, не число, NaN/inf или вне диапазона
    """
    return (
        _parse_coordinate(latitude, "latitude", 90.0),
        _parse_coordinate(longitude, "longitude", 180.0),
    )


class LocationIngestService:
    """Сервис приёма координат."""

    def __init__(
        self,
        db: DatabaseManager,
        hub: BroadcastHub,
        presence: PresenceCache | None = None,
        reject_out_of_order: bool | None = None,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            hub: Хаб рассылки
            presence: Кэш присутствия (None: не используется)
            reject_out_of_order: Не перезаписывать позицию точкой старее текущей
                (None: из настроек tracking.REJECT_OUT_OF_ORDER_SAMPLES)
        """
        if reject_out_of_order is None:
            from src.config import settings
            reject_out_of_order = settings.tracking.REJECT_OUT_OF_ORDER_SAMPLES
        self._db = db
        self._hub = hub
        self._presence = presence
        self._reject_out_of_order = reject_out_of_order
        self._partners = PartnerRepository(db)
        self._orders = OrderRepository(db)

    async def ingest(
        self,
        partner_id: int,
        latitude: Any,
        longitude: Any,
        captured_at: datetime | None = None,
    ) -> IngestResult:
        """
        Принимает одну точку партнёра.

        Raises:
            ValidationError: некорректные координаты
            NotFoundError: партнёр не существует (ничего не записано)
            PersistenceError: ошибка БД (транзакция откатана)
        """
        lat, lng = validate_coordinates(latitude, longitude)

        if captured_at is None:
            captured_at = utc_now()
        elif captured_at.tzinfo is None:
            captured_at = captured_at.replace(tzinfo=timezone.utc)

        async with persistence_errors("ingest"):
            async with self._db.transaction() as conn:
                partner = await self._partners.get_for_update(partner_id, conn)
                if partner is None:
                    raise NotFoundError(f"Партнёр {partner_id} не найден", details={"partner_id": partner_id})

                sample = await self._partners.append_location(partner_id, lat, lng, captured_at, conn)
                applied = await self._partners.update_position(
                    partner_id, lat, lng, captured_at, conn,
                    only_if_newer=self._reject_out_of_order,
                )
                active_order = await self._orders.get_active_by_partner(partner_id, conn)

        order_id = active_order.id if active_order is not None else None

        if not applied:
            await log_info(
                f"Точка партнёра {partner_id} от {captured_at.isoformat()} старее текущей позиции, не применена",
                type_msg=TypeMsg.DEBUG,
            )
            return IngestResult(sample=sample, applied=False, order_id=order_id)

        await self._refresh_presence(partner_id, lat, lng, captured_at)

        await self._hub.publish(LocationUpdated(
            partner_id=partner_id,
            lat=lat,
            lng=lng,
            order_id=order_id,
            timestamp=captured_at,
        ))

        return IngestResult(sample=sample, applied=True, order_id=order_id)

    async def _refresh_presence(self, partner_id: int, lat: float, lng: float, seen_at: datetime) -> None:
        if self._presence is None:
            return
        try:
            await self._presence.touch(partner_id, lat, lng, seen_at)
        except (RedisError, OSError, RuntimeError) as e:
            # Кэш вторичен: позиция уже в БД
            await log_info(f"Не удалось обновить присутствие партнёра {partner_id}: {e}", type_msg=TypeMsg.WARNING)
