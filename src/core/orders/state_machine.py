# src/core/orders/state_machine.py
"""
Единственная таблица допустимых переходов статуса заказа.
Все вызывающие (HTTP, WebSocket) проверяют переходы только через неё.
"""

from __future__ import annotations

from src.common.constants import OrderStatus
from src.common.exceptions import InvalidTransitionError


class OrderStateMachine:
    ALLOWED_TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
        OrderStatus.PREPARED: (OrderStatus.ASSIGNED, OrderStatus.CANCELLED),
        OrderStatus.ASSIGNED: (OrderStatus.PICKED_UP, OrderStatus.CANCELLED),
        OrderStatus.PICKED_UP: (OrderStatus.ON_THE_WAY, OrderStatus.CANCELLED),
        OrderStatus.ON_THE_WAY: (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
        OrderStatus.DELIVERED: (),
        OrderStatus.CANCELLED: (),
    }

    @staticmethod
    def _coerce(status: OrderStatus | str) -> OrderStatus | None:
        try:
            return OrderStatus(status)
        except ValueError:
            return None

    @classmethod
    def can_transition(cls, current_status: OrderStatus | str, new_status: OrderStatus | str) -> bool:
        curr = cls._coerce(current_status)
        new = cls._coerce(new_status)
        if curr is None or new is None:
            return False
        return new in cls.ALLOWED_TRANSITIONS.get(curr, ())

    @classmethod
    def validate(cls, current_status: OrderStatus | str, new_status: OrderStatus | str) -> OrderStatus:
        """
        Проверяет переход и возвращает целевой статус.

        Raises:
            InvalidTransitionError: переход не допускается таблицей
        """
        if not cls.can_transition(current_status, new_status):
            raise InvalidTransitionError(
                f"Переход {current_status} -> {new_status} недопустим",
                details={"from": str(current_status), "to": str(new_status)},
            )
        return OrderStatus(new_status)

    @classmethod
    def is_terminal(cls, status: OrderStatus | str) -> bool:
        curr = cls._coerce(status)
        return curr is not None and not cls.ALLOWED_TRANSITIONS.get(curr)
