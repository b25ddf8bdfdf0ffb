# src/core/partners/repository.py
"""
Репозиторий партнёров доставки и журнала их координат.
Методы принимают необязательное соединение conn, чтобы работать внутри
транзакции вызывающего сервиса. Ошибки БД пробрасываются.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from asyncpg import Connection, Record

from src.core.partners.models import LocationSample, Partner
from src.infra.database import DatabaseManager


_PARTNER_COLUMNS = """
    id, name, email, phone, vehicle_type, is_online,
    current_latitude, current_longitude, position_updated_at,
    rating, total_deliveries, total_earnings, created_at, updated_at
"""

# Поля профиля, которые партнёр может менять сам
PROFILE_FIELDS: tuple[str, ...] = ("name", "email", "vehicle_type")


class PartnerRepository:
    """Репозиторий партнёров."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    def _executor(self, conn: Connection | None) -> Any:
        # asyncpg.Connection и DatabaseManager имеют одинаковый интерфейс запросов
        return conn if conn is not None else self._db

    # =========================================================================
    # ПРОФИЛЬ
    # =========================================================================

    async def get_by_id(self, partner_id: int, conn: Connection | None = None) -> Optional[Partner]:
        """Партнёр по ID или None."""
        row = await self._executor(conn).fetchrow(
            f"SELECT {_PARTNER_COLUMNS} FROM delivery_partners WHERE id = $1",
            partner_id,
        )
        return self._row_to_partner(row) if row is not None else None

    async def get_for_update(self, partner_id: int, conn: Connection) -> Optional[Partner]:
        """
        Блокирует строку партнёра до конца транзакции.
        Сериализует конкурентные ingest одного партнёра.
        """
        row = await conn.fetchrow(
            f"SELECT {_PARTNER_COLUMNS} FROM delivery_partners WHERE id = $1 FOR UPDATE",
            partner_id,
        )
        return self._row_to_partner(row) if row is not None else None

    async def get_many(self, partner_ids: list[int]) -> list[Partner]:
        """Партнёры по списку ID (порядок не гарантируется)."""
        if not partner_ids:
            return []
        rows = await self._db.fetch(
            f"SELECT {_PARTNER_COLUMNS} FROM delivery_partners WHERE id = ANY($1::bigint[])",
            partner_ids,
        )
        return [self._row_to_partner(row) for row in rows]

    async def set_online(self, partner_id: int, is_online: bool) -> Optional[Partner]:
        """Переключает статус на линии. None, если партнёра нет."""
        row = await self._db.fetchrow(
            f"""
            UPDATE delivery_partners
            SET is_online = $2, updated_at = NOW()
            WHERE id = $1
            RETURNING {_PARTNER_COLUMNS}
            """,
            partner_id,
            is_online,
        )
        return self._row_to_partner(row) if row is not None else None

    async def update_profile(self, partner_id: int, updates: dict[str, Any]) -> Optional[Partner]:
        """
        Обновляет поля профиля из PROFILE_FIELDS, остальные ключи игнорируются.
        None, если партнёра нет.
        """
        fields = [name for name in PROFILE_FIELDS if name in updates]
        if not fields:
            return await self.get_by_id(partner_id)

        assignments = ", ".join(f"{name} = ${index}" for index, name in enumerate(fields, start=2))
        row = await self._db.fetchrow(
            f"""
            UPDATE delivery_partners
            SET {assignments}, updated_at = NOW()
            WHERE id = $1
            RETURNING {_PARTNER_COLUMNS}
            """,
            partner_id,
            *(updates[name] for name in fields),
        )
        return self._row_to_partner(row) if row is not None else None

    async def credit_delivery(self, partner_id: int, amount: float, conn: Connection) -> None:
        """Увеличивает счётчик доставок и заработок. Только внутри транзакции перехода."""
        await conn.execute(
            """
            UPDATE delivery_partners
            SET total_deliveries = total_deliveries + 1,
                total_earnings = total_earnings + $2,
                updated_at = NOW()
            WHERE id = $1
            """,
            partner_id,
            amount,
        )

    # =========================================================================
    # КООРДИНАТЫ
    # =========================================================================

    async def append_location(
        self,
        partner_id: int,
        latitude: float,
        longitude: float,
        captured_at: datetime,
        conn: Connection,
    ) -> LocationSample:
        """Добавляет запись в журнал координат (append-only)."""
        row = await conn.fetchrow(
            """
            INSERT INTO partner_locations (delivery_partner_id, latitude, longitude, captured_at)
            VALUES ($1, $2, $3, $4)
            RETURNING id, delivery_partner_id, latitude, longitude, captured_at
            """,
            partner_id,
            latitude,
            longitude,
            captured_at,
        )
        return self._row_to_sample(row)

    async def update_position(
        self,
        partner_id: int,
        latitude: float,
        longitude: float,
        captured_at: datetime,
        conn: Connection,
        only_if_newer: bool = False,
    ) -> bool:
        """
        Перезаписывает текущую позицию партнёра.

        Args:
            only_if_newer: Обновлять, только если captured_at не старше
                уже записанной позиции

        Returns:
            True, если позиция обновлена
        """
        query = """
            UPDATE delivery_partners
            SET current_latitude = $2,
                current_longitude = $3,
                position_updated_at = $4,
                updated_at = NOW()
            WHERE id = $1
        """
        if only_if_newer:
            query += " AND (position_updated_at IS NULL OR position_updated_at <= $4)"

        status = await conn.execute(query, partner_id, latitude, longitude, captured_at)
        # asyncpg возвращает статус вида "UPDATE 1"
        return status.split()[-1] != "0"

    async def get_recent_locations(self, partner_id: int, limit: int = 10) -> list[LocationSample]:
        """Последние записи журнала, новые первыми."""
        rows = await self._db.fetch(
            """
            SELECT id, delivery_partner_id, latitude, longitude, captured_at
            FROM partner_locations
            WHERE delivery_partner_id = $1
            ORDER BY captured_at DESC, id DESC
            LIMIT $2
            """,
            partner_id,
            limit,
        )
        return [self._row_to_sample(row) for row in rows]

    # =========================================================================
    # МАППИНГ
    # =========================================================================

    @staticmethod
    def _row_to_partner(row: Record) -> Partner:
        return Partner(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            phone=row["phone"],
            vehicle_type=row["vehicle_type"],
            is_online=row["is_online"],
            current_latitude=row["current_latitude"],
            current_longitude=row["current_longitude"],
            position_updated_at=row["position_updated_at"],
            rating=float(row["rating"]),
            total_deliveries=row["total_deliveries"],
            total_earnings=float(row["total_earnings"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_sample(row: Record) -> LocationSample:
        return LocationSample(
            id=row["id"],
            partner_id=row["delivery_partner_id"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            captured_at=row["captured_at"],
        )
