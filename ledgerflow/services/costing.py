"""
Costing - weighted-average stock valuation

Pure functions only. Incoming movements blend their cost into the running
average; outgoing movements never change it. Results are quantized after every
step so folding the same history always lands on the same digits.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Optional, Union

from ledgerflow.core.errors import ValidationError

Number = Union[Decimal, int, str]

QTY_QUANT = Decimal("0.0001")
COST_QUANT = Decimal("0.000001")


def to_decimal(value: Optional[Number]) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def quantize_qty(value: Number) -> Decimal:
    return to_decimal(value).quantize(QTY_QUANT, rounding=ROUND_HALF_EVEN)


def quantize_cost(value: Number) -> Decimal:
    return to_decimal(value).quantize(COST_QUANT, rounding=ROUND_HALF_EVEN)


@dataclass(frozen=True)
class LedgerState:
    quantity: Decimal
    unit_cost: Decimal

    @classmethod
    def zero(cls) -> "LedgerState":
        return cls(quantity=quantize_qty(0), unit_cost=quantize_cost(0))

    @classmethod
    def of(cls, quantity: Number, unit_cost: Number) -> "LedgerState":
        return cls(quantity=quantize_qty(quantity), unit_cost=quantize_cost(unit_cost))

    @property
    def value(self) -> Decimal:
        return self.quantity * self.unit_cost


def apply_movement(entry: LedgerState, signed_quantity: Number, unit_cost: Optional[Number] = None) -> LedgerState:
    """Apply one signed movement to a ledger state and return the new state."""
    qty = quantize_qty(signed_quantity)

    if qty == 0:
        return entry

    if qty < 0:
        return LedgerState(quantity=quantize_qty(entry.quantity + qty), unit_cost=entry.unit_cost)

    if unit_cost is None:
        raise ValidationError("incoming movement requires a unit cost")
    incoming_cost = to_decimal(unit_cost)
    if incoming_cost < 0:
        raise ValidationError("unit cost cannot be negative")

    new_qty = quantize_qty(entry.quantity + qty)
    if new_qty == 0:
        return LedgerState(quantity=new_qty, unit_cost=entry.unit_cost)

    new_cost = (entry.quantity * entry.unit_cost + qty * incoming_cost) / new_qty
    return LedgerState(quantity=new_qty, unit_cost=quantize_cost(new_cost))


def apply_adjustment(entry: LedgerState, new_quantity: Number, unit_cost: Optional[Number] = None) -> LedgerState:
    """Physical count correction: quantity is set, cost only if one is given."""
    cost = entry.unit_cost if unit_cost is None else quantize_cost(unit_cost)
    if cost < 0:
        raise ValidationError("unit cost cannot be negative")
    return LedgerState(quantity=quantize_qty(new_quantity), unit_cost=cost)
