# tests/core/test_state_machine.py
"""
Тесты таблицы переходов статуса заказа.
"""

from __future__ import annotations

import itertools

import pytest

from src.common.constants import OrderStatus
from src.common.exceptions import InvalidTransitionError
from src.core.orders.state_machine import OrderStateMachine


FORWARD_CHAIN = [
    OrderStatus.PREPARED,
    OrderStatus.ASSIGNED,
    OrderStatus.PICKED_UP,
    OrderStatus.ON_THE_WAY,
    OrderStatus.DELIVERED,
]


class TestAllowedTransitions:

    def test_every_status_in_table(self) -> None:
        assert set(OrderStateMachine.ALLOWED_TRANSITIONS) == set(OrderStatus)

    @pytest.mark.parametrize("current, target", list(zip(FORWARD_CHAIN, FORWARD_CHAIN[1:])))
    def test_immediate_successor_allowed(self, current: OrderStatus, target: OrderStatus) -> None:
        assert OrderStateMachine.can_transition(current, target)

    @pytest.mark.parametrize("current", FORWARD_CHAIN[:-1])
    def test_cancel_from_non_terminal(self, current: OrderStatus) -> None:
        assert OrderStateMachine.can_transition(current, OrderStatus.CANCELLED)

    def test_only_table_pairs_allowed(self) -> None:
        allowed = {
            (current, target)
            for current, targets in OrderStateMachine.ALLOWED_TRANSITIONS.items()
            for target in targets
        }
        for current, target in itertools.product(OrderStatus, repeat=2):
            assert OrderStateMachine.can_transition(current, target) == ((current, target) in allowed)

    def test_skipping_a_step_rejected(self) -> None:
        assert not OrderStateMachine.can_transition(OrderStatus.ASSIGNED, OrderStatus.ON_THE_WAY)
        assert not OrderStateMachine.can_transition(OrderStatus.PREPARED, OrderStatus.DELIVERED)

    def test_backwards_rejected(self) -> None:
        assert not OrderStateMachine.can_transition(OrderStatus.ON_THE_WAY, OrderStatus.PICKED_UP)

    @pytest.mark.parametrize("terminal", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
    def test_terminal_has_no_exits(self, terminal: OrderStatus) -> None:
        assert OrderStateMachine.is_terminal(terminal)
        for target in OrderStatus:
            assert not OrderStateMachine.can_transition(terminal, target)

    def test_accepts_wire_strings(self) -> None:
        assert OrderStateMachine.can_transition("picked_up", "on_the_way")
        assert not OrderStateMachine.can_transition("picked_up", "teleported")


class TestValidate:

    def test_returns_target(self) -> None:
        assert OrderStateMachine.validate("assigned", "picked_up") is OrderStatus.PICKED_UP

    def test_raises_with_details(self) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            OrderStateMachine.validate(OrderStatus.DELIVERED, OrderStatus.CANCELLED)

        assert exc_info.value.details == {"from": "delivered", "to": "cancelled"}
