"""Earnings calculation for daily work logs.

All arithmetic stays in ``Decimal``; rounding to cents happens exactly once,
on the final sum, so recomputing a stored entry reproduces it exactly.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from trench_payroll.calculators.types import AdditionalItem
from trench_payroll.errors import InvalidInputError, ValidationError

OUTPUT_PRECISION = Decimal("0.01")
ZERO = Decimal("0")


def round_to_cents(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return amount.quantize(OUTPUT_PRECISION, rounding=ROUND_HALF_UP)


def compute_earnings(
    open_meters: Decimal,
    close_meters: Decimal,
    open_rate: Decimal,
    close_rate: Decimal,
    additional_items: Sequence[AdditionalItem] = (),
) -> Decimal:
    """Compute total earnings for one work log.

    ``open_meters * open_rate + close_meters * close_rate + Σ item.amount``,
    rounded once at the end.

    Raises:
        InvalidInputError: If any meter, rate, or item amount is negative.
    """
    for name, value in (
        ("open_meters", open_meters),
        ("close_meters", close_meters),
        ("open_rate", open_rate),
        ("close_rate", close_rate),
    ):
        if value < 0:
            raise InvalidInputError(f"{name} must be non-negative, got {value}", field=name)

    total = open_meters * open_rate + close_meters * close_rate
    for item in additional_items:
        if item.amount < 0:
            raise InvalidInputError(
                f"Additional item '{item.description}' has negative amount {item.amount}",
                field="additional_items",
            )
        total += item.amount

    return round_to_cents(total)


def normalize_quantity(value: Any, field: str) -> Decimal:
    """Coerce a boundary value to a non-negative Decimal with at most 2 places.

    Values with more precision than storage keeps are rejected rather than
    rounded, otherwise the stored figures would no longer reproduce the
    stored earnings.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = repr(value)
    try:
        quantity = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} {value!r} is not a number", field=field)
    if not quantity.is_finite():
        raise ValidationError(f"{field} must be finite", field=field)
    if quantity < 0:
        raise ValidationError(f"{field} must be non-negative, got {quantity}", field=field)
    if quantity != quantity.quantize(OUTPUT_PRECISION):
        raise ValidationError(
            f"{field} allows at most 2 decimal places, got {quantity}", field=field
        )
    return quantity.quantize(OUTPUT_PRECISION)


def parse_additional_items(raw: Iterable[Any] | None) -> list[AdditionalItem]:
    """Validate submitted or stored additional items."""
    if not raw:
        return []
    items: list[AdditionalItem] = []
    for entry in raw:
        item = entry if isinstance(entry, AdditionalItem) else AdditionalItem.from_dict(entry)
        amount = normalize_quantity(item.amount, "additional_items")
        items.append(AdditionalItem(description=item.description, amount=amount))
    return items
