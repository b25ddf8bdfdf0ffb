# src/core/partners/service.py
"""
Сервис партнёров: профиль, выход на линию и поиск ближайших.
"""

from __future__ import annotations

from typing import Any

import asyncpg
from redis.exceptions import RedisError

from src.common.constants import TypeMsg
from src.common.exceptions import NotFoundError, PersistenceError, ValidationError
from src.common.logger import log_info
from src.core.partners.models import LocationSample, NearbyPartner, Partner
from src.core.partners.repository import PartnerRepository
from src.core.tracking.presence import PresenceCache
from src.infra.database import DatabaseManager, persistence_errors
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


class PartnerService:
    """Сервис партнёров."""

    def __init__(
        self,
        db: DatabaseManager,
        presence: PresenceCache | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._repo = PartnerRepository(db)
        self._presence = presence
        self._event_bus = event_bus

    async def get_profile(self, partner_id: int) -> Partner:
        async with persistence_errors("partner_profile"):
            partner = await self._repo.get_by_id(partner_id)
        if partner is None:
            raise NotFoundError(f"Партнёр {partner_id} не найден", details={"partner_id": partner_id})
        return partner

    async def update_profile(self, partner_id: int, updates: dict[str, Any]) -> Partner:
        """
        Обновляет профиль партнёра (name, email, vehicle_type).
        ID, телефон, статистика и позиция через профиль не меняются.

        Raises:
            NotFoundError: партнёра нет
            ValidationError: email уже занят другим партнёром
        """
        async with persistence_errors("partner_profile_update"):
            try:
                partner = await self._repo.update_profile(partner_id, updates)
            except asyncpg.UniqueViolationError:
                raise ValidationError(
                    "Email уже используется другим партнёром",
                    details={"field": "email"},
                ) from None
        if partner is None:
            raise NotFoundError(f"Партнёр {partner_id} не найден", details={"partner_id": partner_id})

        await log_info(
            f"Профиль партнёра {partner_id} обновлён: {', '.join(sorted(updates)) or '-'}",
            type_msg=TypeMsg.INFO,
        )
        return partner

    async def set_online(self, partner_id: int, is_online: bool) -> Partner:
        """
        Переключает статус на линии.
        При уходе с линии партнёр убирается из кэша присутствия.
        """
        async with persistence_errors("partner_status"):
            partner = await self._repo.set_online(partner_id, is_online)
        if partner is None:
            raise NotFoundError(f"Партнёр {partner_id} не найден", details={"partner_id": partner_id})

        if not is_online and self._presence is not None:
            try:
                await self._presence.remove(partner_id)
            except (RedisError, OSError, RuntimeError) as e:
                await log_info(f"Не удалось убрать присутствие партнёра {partner_id}: {e}", type_msg=TypeMsg.WARNING)

        await log_info(
            f"Партнёр {partner_id} {'на линии' if is_online else 'ушёл с линии'}",
            type_msg=TypeMsg.INFO,
        )

        if self._event_bus is not None:
            await self._event_bus.publish(DomainEvent(
                event_type=EventTypes.PARTNER_ONLINE if is_online else EventTypes.PARTNER_OFFLINE,
                payload={"partner_id": partner_id},
            ))
        return partner

    async def get_recent_locations(self, partner_id: int, limit: int | None = None) -> list[LocationSample]:
        if limit is None:
            from src.config import settings
            limit = settings.tracking.LOCATION_HISTORY_LIMIT
        async with persistence_errors("partner_locations"):
            return await self._repo.get_recent_locations(partner_id, limit)

    async def find_nearby(
        self,
        latitude: float,
        longitude: float,
        radius_km: float | None = None,
        limit: int | None = None,
    ) -> list[NearbyPartner]:
        """
        Партнёры на линии рядом с точкой, ближайшие первыми.
        Кандидаты берутся из кэша присутствия, профиль из БД.
        """
        from src.config import settings

        if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
            raise ValidationError("Координаты вне допустимого диапазона")
        if self._presence is None:
            return []

        radius_km = radius_km if radius_km is not None else settings.tracking.NEARBY_RADIUS_KM
        limit = limit if limit is not None else settings.tracking.NEARBY_LIMIT

        try:
            candidates = await self._presence.nearby(latitude, longitude, radius_km, limit)
        except (RedisError, OSError) as e:
            raise PersistenceError("Кэш присутствия недоступен") from e
        if not candidates:
            return []

        async with persistence_errors("partners_nearby"):
            partners = {p.id: p for p in await self._repo.get_many([pid for pid, _ in candidates])}

        result: list[NearbyPartner] = []
        for partner_id, distance in candidates:
            partner = partners.get(partner_id)
            if partner is None or not partner.is_online:
                continue
            result.append(NearbyPartner(
                partner_id=partner_id,
                distance_km=round(distance, 3),
                latitude=partner.current_latitude,
                longitude=partner.current_longitude,
                name=partner.name,
            ))
        return result
