from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

from .errors import InvalidInput
from .records import SaleItem

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value: Any) -> Decimal:
    """Coerce to a 2-place Decimal; floats go through ``str`` to avoid binary noise."""
    if isinstance(value, bool):
        raise InvalidInput(f"Not a monetary amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidInput(f"Not a monetary amount: {value!r}")
    if not amount.is_finite():
        raise InvalidInput(f"Not a monetary amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def non_negative_money(value: Any, label: str) -> Decimal:
    amount = money(ZERO if value is None else value)
    if amount < ZERO:
        raise InvalidInput(f"{label} must be >= 0")
    return amount


def price_line(drug_id: int, drug_name: str, quantity: int, unit_price: Decimal) -> SaleItem:
    return SaleItem(
        drug_id=drug_id,
        drug_name=drug_name,
        quantity=quantity,
        unit_price=unit_price,
        total_price=money(unit_price * quantity),
    )


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal


def compute_totals(items: Iterable[SaleItem], discount: Decimal, tax: Decimal) -> Totals:
    """total = max(0, subtotal - discount + tax); always re-derived, never taken from input."""
    subtotal = money(sum((item.total_price for item in items), ZERO))
    total = max(ZERO, money(subtotal - discount + tax))
    return Totals(subtotal=subtotal, discount=discount, tax=tax, total=total)
