from decimal import Decimal

import pytest

from ledgerflow.core.errors import ValidationError
from ledgerflow.services.costing import LedgerState, apply_movement, apply_adjustment


def test_incoming_blends_average_cost():
    state = apply_movement(LedgerState.of(10, "2.00"), 5, "3.00")
    assert state.quantity == Decimal("15")
    assert state.unit_cost == Decimal("2.333333")


def test_outgoing_keeps_cost():
    state = apply_movement(LedgerState.of(15, "2.3333"), -4)
    assert state.quantity == Decimal("11")
    assert state.unit_cost == Decimal("2.3333")


def test_first_purchase_sets_cost():
    state = apply_movement(LedgerState.zero(), 5, 3)
    assert state == LedgerState.of(5, 3)


def test_zero_movement_is_identity():
    start = LedgerState.of(7, "1.5")
    assert apply_movement(start, 0, 9) is start


def test_incoming_into_negative_stock_reaching_zero_keeps_cost():
    state = apply_movement(LedgerState.of(-3, 2), 3, 10)
    assert state.quantity == 0
    assert state.unit_cost == Decimal("2")


def test_outgoing_can_go_negative():
    state = apply_movement(LedgerState.of(2, 4), -5)
    assert state.quantity == Decimal("-3")
    assert state.unit_cost == Decimal("4")


def test_incoming_requires_cost():
    with pytest.raises(ValidationError):
        apply_movement(LedgerState.zero(), 1)


def test_incoming_rejects_negative_cost():
    with pytest.raises(ValidationError):
        apply_movement(LedgerState.zero(), 1, -1)


def test_adjustment_sets_quantity_and_optional_cost():
    start = LedgerState.of(10, 2)
    assert apply_adjustment(start, 7) == LedgerState.of(7, 2)
    assert apply_adjustment(start, 7, "2.5") == LedgerState.of(7, "2.5")


def test_results_are_quantized():
    state = apply_movement(LedgerState.zero(), "1.23456", "0.1234567")
    assert state.quantity == Decimal("1.2346")
    assert state.unit_cost == Decimal("0.123457")
    assert state.value == state.quantity * state.unit_cost
