# src/core/orders/service.py
"""
Сервис заказов.
Принятие заказа, переходы статуса, начисление заработка и списки для партнёра.
Все переходы проверяются через OrderStateMachine.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional
from uuid import UUID

import asyncpg

from src.common.constants import OrderStatus, TypeMsg
from src.common.exceptions import (
    AlreadyAssignedError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from src.common.logger import log_info
from src.common.timezone import today_bounds, utc_now
from src.core.orders.models import Earning, EarningsSummary, Order
from src.core.orders.repository import EarningRepository, OrderRepository
from src.core.orders.state_machine import OrderStateMachine
from src.core.partners.repository import PartnerRepository
from src.core.tracking.hub import BroadcastHub
from src.core.tracking.messages import OrderStatusChanged
from src.infra.database import DatabaseManager, persistence_errors
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


def normalize_order_id(order_id: Any) -> str:
    """
    Канонический вид ID заказа (UUID в нижнем регистре).
    Строка, не являющаяся UUID, не может быть ID заказа: NotFoundError
    до обращения к БД.
    """
    try:
        return str(UUID(str(order_id)))
    except ValueError:
        raise NotFoundError(f"Заказ {order_id} не найден", details={"order_id": str(order_id)}) from None


class OrderLocks:
    """
    Замки процесса по order_id.
    Запись удаляется, когда замок никто не держит и не ждёт.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncGenerator[None, None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                self._locks.pop(key, None)


class OrderService:
    """
    Сервис заказов.
    Переходы одного заказа сериализуются замком процесса и блокировкой
    строки (SELECT ... FOR UPDATE) внутри транзакции.
    """

    def __init__(
        self,
        db: DatabaseManager,
        hub: BroadcastHub,
        event_bus: EventBus | None = None,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            hub: Хаб рассылки статусов
            event_bus: Шина доменных событий (None: события не публикуются)
        """
        self._db = db
        self._hub = hub
        self._event_bus = event_bus
        self._orders = OrderRepository(db)
        self._earnings = EarningRepository(db)
        self._partners = PartnerRepository(db)
        self._locks = OrderLocks()

    # =========================================================================
    # ЖИЗНЕННЫЙ ЦИКЛ ЗАКАЗА
    # =========================================================================

    async def accept(self, order_id: str, partner_id: int) -> Order:
        """
        Партнёр принимает заказ (prepared -> assigned).

        Raises:
            NotFoundError: заказа нет
            AlreadyAssignedError: у заказа уже есть партнёр
            InvalidStateError: заказ не в статусе prepared
        """
        order_id = normalize_order_id(order_id)
        async with self._locks.hold(order_id):
            async with persistence_errors("accept"):
                try:
                    order = await self._orders.try_assign(order_id, partner_id)
                except asyncpg.ForeignKeyViolationError:
                    raise NotFoundError(
                        f"Партнёр {partner_id} не найден", details={"partner_id": partner_id},
                    ) from None

                if order is None:
                    current = await self._orders.get_by_id(order_id)
                    if current is None:
                        raise NotFoundError(f"Заказ {order_id} не найден", details={"order_id": order_id})
                    if current.assigned_partner_id is not None:
                        raise AlreadyAssignedError(
                            f"Заказ {order_id} уже принят",
                            details={"order_id": order_id},
                        )
                    raise InvalidStateError(
                        f"Заказ {order_id} нельзя принять в статусе {current.status}",
                        details={"order_id": order_id, "status": str(current.status)},
                    )

        await log_info(f"Заказ {order_id} принят партнёром {partner_id}", type_msg=TypeMsg.INFO)

        await self._announce(order)
        await self._emit(EventTypes.ORDER_ACCEPTED, {
            "order_id": order.id,
            "order_number": order.order_number,
            "partner_id": partner_id,
        })
        return order

    async def transition(self, order_id: str, target: OrderStatus | str, partner_id: int) -> Order:
        """
        Переводит заказ в следующий статус (или отменяет).
        Переход в assigned выполняется как accept().

        Raises:
            ValidationError: неизвестный статус
            NotFoundError: заказа нет
            InvalidTransitionError: переход не допускается таблицей
            ForbiddenError: заказ назначен другому партнёру
        """
        order_id = normalize_order_id(order_id)
        try:
            target_status = OrderStatus(target)
        except ValueError:
            raise ValidationError(f"Неизвестный статус заказа: {target}", details={"status": str(target)}) from None

        if target_status == OrderStatus.ASSIGNED:
            async with persistence_errors("transition"):
                current = await self._orders.get_by_id(order_id)
            if current is None:
                raise NotFoundError(f"Заказ {order_id} не найден", details={"order_id": order_id})
            OrderStateMachine.validate(current.status, target_status)
            return await self.accept(order_id, partner_id)

        earning: Optional[Earning] = None
        async with self._locks.hold(order_id):
            async with persistence_errors("transition"):
                async with self._db.transaction() as conn:
                    order = await self._orders.get_for_update(order_id, conn)
                    if order is None:
                        raise NotFoundError(f"Заказ {order_id} не найден", details={"order_id": order_id})

                    OrderStateMachine.validate(order.status, target_status)

                    if order.assigned_partner_id != partner_id:
                        raise ForbiddenError(
                            f"Заказ {order_id} не назначен партнёру {partner_id}",
                            details={"order_id": order_id},
                        )

                    delivered_at = utc_now() if target_status == OrderStatus.DELIVERED else None
                    updated = await self._orders.update_status(
                        order_id, target_status, conn, actual_delivery_time=delivered_at,
                    )

                    if target_status == OrderStatus.DELIVERED:
                        earning = await self._earnings.create(partner_id, order_id, order.delivery_fee, conn)
                        # None: начисление уже есть, повторно не зачисляем
                        if earning is not None:
                            await self._partners.credit_delivery(partner_id, earning.amount, conn)

        await log_info(
            f"Заказ {order_id}: {order.status} -> {target_status} (партнёр {partner_id})",
            type_msg=TypeMsg.INFO,
        )

        await self._announce(updated)
        await self._emit_transition(updated, previous=order.status, earning=earning)
        return updated

    # =========================================================================
    # СПИСКИ
    # =========================================================================

    async def get_order(self, order_id: str) -> Order:
        order_id = normalize_order_id(order_id)
        async with persistence_errors("get_order"):
            order = await self._orders.get_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Заказ {order_id} не найден", details={"order_id": order_id})
        return order

    async def get_available(self, limit: int = 50) -> list[Order]:
        async with persistence_errors("orders_available"):
            return await self._orders.get_available(limit)

    async def get_active(self, partner_id: int) -> Optional[Order]:
        async with persistence_errors("orders_active"):
            return await self._orders.get_active_by_partner(partner_id)

    async def get_history(self, partner_id: int, limit: int = 20, offset: int = 0) -> list[Order]:
        async with persistence_errors("orders_history"):
            return await self._orders.get_history(partner_id, limit, offset)

    async def get_today_earnings(self, partner_id: int) -> EarningsSummary:
        """Заработок за текущие локальные сутки (зона из domain.TIMEZONE)."""
        from src.config import settings

        start, end = today_bounds()
        async with persistence_errors("earnings_today"):
            total, deliveries = await self._earnings.get_summary(partner_id, start, end)
        return EarningsSummary(total=total, deliveries=deliveries, currency=settings.domain.CURRENCY)

    async def get_earnings_history(self, partner_id: int, limit: int = 20, offset: int = 0) -> list[Earning]:
        async with persistence_errors("earnings_history"):
            return await self._earnings.get_history(partner_id, limit, offset)

    # =========================================================================
    # ПУБЛИКАЦИЯ
    # =========================================================================

    async def _announce(self, order: Order) -> None:
        await self._hub.publish(OrderStatusChanged(
            order_id=order.id,
            status=order.status,
            partner_id=order.assigned_partner_id,
            timestamp=order.updated_at,
        ))

    async def _emit_transition(
        self,
        order: Order,
        previous: OrderStatus,
        earning: Optional[Earning],
    ) -> None:
        await self._emit(EventTypes.ORDER_STATUS_CHANGED, {
            "order_id": order.id,
            "partner_id": order.assigned_partner_id,
            "from": previous.value,
            "to": order.status.value,
        })
        if order.status == OrderStatus.DELIVERED:
            await self._emit(EventTypes.ORDER_DELIVERED, {
                "order_id": order.id,
                "partner_id": order.assigned_partner_id,
                "actual_delivery_time": order.actual_delivery_time,
            })
        elif order.status == OrderStatus.CANCELLED:
            await self._emit(EventTypes.ORDER_CANCELLED, {
                "order_id": order.id,
                "partner_id": order.assigned_partner_id,
            })
        if earning is not None:
            await self._emit(EventTypes.EARNING_CREDITED, {
                "earning_id": earning.id,
                "order_id": earning.order_id,
                "partner_id": earning.partner_id,
                "amount": earning.amount,
            })

    async def _emit(self, event_type: str, payload: dict[str, Any]) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
