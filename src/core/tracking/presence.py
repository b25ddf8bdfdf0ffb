# src/core/tracking/presence.py
"""
Кэш присутствия партнёров в Redis.
Geo-индекс последних координат для поиска ближайших и hash last_seen с TTL.
Источник истины по позиции остаётся в PostgreSQL.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from src.infra.redis_client import RedisClient


class PresenceCache:
    """Присутствие партнёров поверх RedisClient."""

    GEO_KEY = "partners:locations"

    def __init__(self, redis: RedisClient, last_seen_ttl: int | None = None) -> None:
        if last_seen_ttl is None:
            from src.config import settings
            last_seen_ttl = settings.redis_ttl.LAST_SEEN_TTL
        self._redis = redis
        self._ttl = last_seen_ttl

    @staticmethod
    def _last_seen_key(partner_id: int) -> str:
        return f"partner:{partner_id}:last_seen"

    async def touch(self, partner_id: int, latitude: float, longitude: float, seen_at: datetime) -> None:
        """Обновляет позицию в geo-индексе и отметку last_seen."""
        await self._redis.geoadd(self.GEO_KEY, longitude, latitude, str(partner_id))
        await self._redis.hset_mapping(
            self._last_seen_key(partner_id),
            {"lat": latitude, "lng": longitude, "at": seen_at.isoformat()},
            ttl=self._ttl,
        )

    async def remove(self, partner_id: int) -> None:
        """Убирает партнёра из индекса (уход с линии)."""
        await self._redis.georem(self.GEO_KEY, str(partner_id))
        await self._redis.delete(self._last_seen_key(partner_id))

    async def last_seen(self, partner_id: int) -> Optional[datetime]:
        data = await self._redis.hgetall(self._last_seen_key(partner_id))
        if not data or "at" not in data:
            return None
        return datetime.fromisoformat(data["at"])

    async def nearby(
        self,
        latitude: float,
        longitude: float,
        radius_km: float,
        limit: int | None = None,
    ) -> list[tuple[int, float]]:
        """
        Партнёры в радиусе, ближайшие первыми.
        Партнёры без свежего last_seen отфильтровываются.

        Returns:
            Список (partner_id, расстояние в км)
        """
        candidates = await self._redis.geosearch(
            self.GEO_KEY, longitude, latitude, radius_km, count=limit,
        )
        result: list[tuple[int, float]] = []
        for member, distance in candidates:
            partner_id = int(member)
            if await self.last_seen(partner_id) is None:
                continue
            result.append((partner_id, distance))
        return result
