"""
Unit normalization

Converts quantities expressed in a purchase or BOM unit into the stock unit
an item is kept in.
"""
import unicodedata
from decimal import Decimal
from typing import Optional

from ledgerflow.core.errors import UnitConversionError
from .costing import Number, to_decimal

# Scale to the base unit of each dimension
MASS = {"mg": Decimal("0.001"), "g": Decimal("1"), "kg": Decimal("1000")}
VOLUME = {"ml": Decimal("1"), "l": Decimal("1000")}
DIMENSIONS = (MASS, VOLUME)

ALIASES = {
    "gr": "g", "grama": "g", "gramas": "g",
    "kilo": "kg", "kilos": "kg",
    "lt": "l", "litro": "l", "litros": "l",
    "unidade": "un", "unit": "un", "unidades": "un", "und": "un",
}


def normalize_unit(unit: Optional[str]) -> str:
    value = (unit or "").strip().lower()
    return ALIASES.get(value, value)


def normalize_name(name: Optional[str]) -> str:
    """Lower-case, strip accents and collapse whitespace, for name matching."""
    text = unicodedata.normalize("NFD", (name or "").strip().lower())
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    return " ".join(text.split())


def _scale(from_unit: str, to_unit: str) -> Optional[Decimal]:
    for table in DIMENSIONS:
        if from_unit in table and to_unit in table:
            return table[from_unit] / table[to_unit]
    return None


def conversion_factor(item, unit: Optional[str]) -> Decimal:
    """How many stock units one `unit` of this item is worth."""
    source = normalize_unit(unit) or normalize_unit(item.unit)
    stock_unit = normalize_unit(item.unit)

    if source == stock_unit:
        return Decimal("1")

    direct = _scale(source, stock_unit)
    if direct is not None:
        return direct

    secondary = normalize_unit(item.secondary_unit)
    if secondary and item.secondary_factor:
        factor = to_decimal(item.secondary_factor)
        if source == secondary:
            return factor
        via_secondary = _scale(source, secondary)
        if via_secondary is not None:
            return via_secondary * factor

    raise UnitConversionError(
        f"cannot convert '{unit}' to stock unit '{item.unit}'",
        entity_id=item.id,
        unit=unit,
        stock_unit=item.unit,
    )


def to_stock_units(item, quantity: Number, unit: Optional[str]) -> Decimal:
    return to_decimal(quantity) * conversion_factor(item, unit)
