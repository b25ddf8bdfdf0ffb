# src/core/orders/repository.py
"""
Репозитории заказов и начислений.
Методы с параметром conn работают внутри транзакции вызывающего сервиса.
Ошибки БД пробрасываются: их классифицирует сервисный слой.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from asyncpg import Connection, Record

from src.common.constants import ACTIVE_ORDER_STATUSES, TERMINAL_ORDER_STATUSES, OrderStatus, PaymentMethod
from src.core.orders.models import Customer, Earning, Order
from src.infra.database import DatabaseManager


_ORDER_COLUMNS = """
    o.id, o.order_number, o.customer_id, o.delivery_partner_id, o.status,
    o.amount, o.delivery_fee, o.payment_method,
    o.delivery_address, o.delivery_latitude, o.delivery_longitude,
    o.estimated_delivery_time, o.actual_delivery_time, o.created_at, o.updated_at
"""

_CUSTOMER_COLUMNS = """
    c.name AS customer_name, c.phone AS customer_phone, c.address AS customer_address
"""


class OrderRepository:
    """Репозиторий заказов."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    def _executor(self, conn: Connection | None) -> Any:
        return conn if conn is not None else self._db

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get_by_id(self, order_id: str, conn: Connection | None = None) -> Optional[Order]:
        """Заказ с данными покупателя или None."""
        row = await self._executor(conn).fetchrow(
            f"""
            SELECT {_ORDER_COLUMNS}, {_CUSTOMER_COLUMNS}
            FROM orders o
            LEFT JOIN customers c ON c.id = o.customer_id
            WHERE o.id = $1
            """,
            order_id,
        )
        return self._row_to_order(row) if row is not None else None

    async def get_for_update(self, order_id: str, conn: Connection) -> Optional[Order]:
        """Читает заказ с блокировкой строки до конца транзакции."""
        row = await conn.fetchrow(
            f"SELECT {_ORDER_COLUMNS} FROM orders o WHERE o.id = $1 FOR UPDATE",
            order_id,
        )
        return self._row_to_order(row) if row is not None else None

    async def get_available(self, limit: int = 50) -> list[Order]:
        """Готовые к выдаче заказы без партнёра, старые первыми."""
        rows = await self._db.fetch(
            f"""
            SELECT {_ORDER_COLUMNS}, {_CUSTOMER_COLUMNS}
            FROM orders o
            LEFT JOIN customers c ON c.id = o.customer_id
            WHERE o.status = $1 AND o.delivery_partner_id IS NULL
            ORDER BY o.created_at ASC
            LIMIT $2
            """,
            OrderStatus.PREPARED.value,
            limit,
        )
        return [self._row_to_order(row) for row in rows]

    async def get_active_by_partner(self, partner_id: int, conn: Connection | None = None) -> Optional[Order]:
        """Текущий незавершённый заказ партнёра."""
        row = await self._executor(conn).fetchrow(
            f"""
            SELECT {_ORDER_COLUMNS}, {_CUSTOMER_COLUMNS}
            FROM orders o
            LEFT JOIN customers c ON c.id = o.customer_id
            WHERE o.delivery_partner_id = $1 AND o.status = ANY($2::text[])
            ORDER BY o.updated_at DESC
            LIMIT 1
            """,
            partner_id,
            [s.value for s in ACTIVE_ORDER_STATUSES],
        )
        return self._row_to_order(row) if row is not None else None

    async def get_history(self, partner_id: int, limit: int = 20, offset: int = 0) -> list[Order]:
        """Завершённые и отменённые заказы партнёра, новые первыми."""
        rows = await self._db.fetch(
            f"""
            SELECT {_ORDER_COLUMNS}, {_CUSTOMER_COLUMNS}
            FROM orders o
            LEFT JOIN customers c ON c.id = o.customer_id
            WHERE o.delivery_partner_id = $1 AND o.status = ANY($2::text[])
            ORDER BY o.updated_at DESC
            LIMIT $3 OFFSET $4
            """,
            partner_id,
            [s.value for s in TERMINAL_ORDER_STATUSES],
            limit,
            offset,
        )
        return [self._row_to_order(row) for row in rows]

    # =========================================================================
    # ЗАПИСЬ
    # =========================================================================

    async def try_assign(self, order_id: str, partner_id: int) -> Optional[Order]:
        """
        Compare-and-swap назначение партнёра.
        Успешно только для заказа в статусе prepared без партнёра.

        Returns:
            Обновлённый заказ или None, если условие не выполнено
        """
        row = await self._db.fetchrow(
            f"""
            UPDATE orders o
            SET delivery_partner_id = $2, status = $3, updated_at = NOW()
            WHERE o.id = $1 AND o.status = $4 AND o.delivery_partner_id IS NULL
            RETURNING {_ORDER_COLUMNS}
            """,
            order_id,
            partner_id,
            OrderStatus.ASSIGNED.value,
            OrderStatus.PREPARED.value,
        )
        return self._row_to_order(row) if row is not None else None

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        conn: Connection,
        actual_delivery_time: datetime | None = None,
    ) -> Order:
        """Записывает новый статус. Вызывается после проверки перехода под блокировкой."""
        row = await conn.fetchrow(
            f"""
            UPDATE orders o
            SET status = $2,
                actual_delivery_time = COALESCE($3, o.actual_delivery_time),
                updated_at = NOW()
            WHERE o.id = $1
            RETURNING {_ORDER_COLUMNS}
            """,
            order_id,
            status.value,
            actual_delivery_time,
        )
        return self._row_to_order(row)

    # =========================================================================
    # МАППИНГ
    # =========================================================================

    @staticmethod
    def _row_to_order(row: Record) -> Order:
        customer = None
        # Колонки покупателя есть только в запросах с JOIN
        if "customer_name" in row.keys() and row["customer_name"] is not None:
            customer = Customer(
                id=row["customer_id"],
                name=row["customer_name"],
                phone=row["customer_phone"],
                address=row["customer_address"],
            )
        return Order(
            id=str(row["id"]),
            order_number=row["order_number"],
            customer_id=row["customer_id"],
            assigned_partner_id=row["delivery_partner_id"],
            status=OrderStatus(row["status"]),
            amount=float(row["amount"]),
            delivery_fee=float(row["delivery_fee"]),
            payment_method=PaymentMethod(row["payment_method"]),
            delivery_address=row["delivery_address"],
            delivery_latitude=row["delivery_latitude"],
            delivery_longitude=row["delivery_longitude"],
            estimated_delivery_time=row["estimated_delivery_time"],
            actual_delivery_time=row["actual_delivery_time"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            customer=customer,
        )


class EarningRepository:
    """Репозиторий начислений партнёрам."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(
        self,
        partner_id: int,
        order_id: str,
        amount: float,
        conn: Connection,
    ) -> Optional[Earning]:
        """
        Создаёт начисление. Повтор для той же пары (партнёр, заказ)
        ничего не пишет и возвращает None.
        """
        row = await conn.fetchrow(
            """
            INSERT INTO earnings (delivery_partner_id, order_id, amount)
            VALUES ($1, $2, $3)
            ON CONFLICT (delivery_partner_id, order_id) DO NOTHING
            RETURNING id, delivery_partner_id, order_id, amount, created_at
            """,
            partner_id,
            order_id,
            amount,
        )
        return self._row_to_earning(row) if row is not None else None

    async def get_summary(self, partner_id: int, start: datetime, end: datetime) -> tuple[float, int]:
        """Сумма и количество начислений в интервале [start, end)."""
        row = await self._db.fetchrow(
            """
            SELECT COALESCE(SUM(amount), 0) AS total, COUNT(*) AS deliveries
            FROM earnings
            WHERE delivery_partner_id = $1 AND created_at >= $2 AND created_at < $3
            """,
            partner_id,
            start,
            end,
        )
        if row is None:
            return 0.0, 0
        return float(row["total"]), int(row["deliveries"])

    async def get_history(self, partner_id: int, limit: int = 20, offset: int = 0) -> list[Earning]:
        rows = await self._db.fetch(
            """
            SELECT id, delivery_partner_id, order_id, amount, created_at
            FROM earnings
            WHERE delivery_partner_id = $1
            ORDER BY created_at DESC
            LIMIT $2 OFFSET $3
            """,
            partner_id,
            limit,
            offset,
        )
        return [self._row_to_earning(row) for row in rows]

    @staticmethod
    def _row_to_earning(row: Record) -> Earning:
        return Earning(
            id=row["id"],
            partner_id=row["delivery_partner_id"],
            order_id=str(row["order_id"]),
            amount=float(row["amount"]),
            created_at=row["created_at"],
        )
