"""Type definitions for the earnings pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from trench_payroll.errors import ValidationError


class RateCategory(str, Enum):
    """Work categories a pay rate can price."""

    OPEN_TRENCHING = "open_trenching"
    CLOSE_TRENCHING = "close_trenching"
    CUSTOM = "custom"


class RateUnit(str, Enum):
    """Unit a pay rate amount is quoted in."""

    PER_METER = "per_meter"
    PER_DAY = "per_day"
    FIXED = "fixed"


# Categories whose amount is multiplied by meters in the earnings formula
METERED_CATEGORIES = frozenset({RateCategory.OPEN_TRENCHING, RateCategory.CLOSE_TRENCHING})


@dataclass(frozen=True)
class AdditionalItem:
    """A custom earnings line on a work log (e.g. a fixed call-out fee)."""

    description: str
    amount: Decimal

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AdditionalItem:
        """Parse a stored or submitted item, rejecting malformed values."""
        if not isinstance(data, dict):
            raise ValidationError(
                "Additional items must be objects with description and amount",
                field="additional_items",
            )
        description = str(data.get("description") or "").strip()
        if not description:
            raise ValidationError("Additional item needs a description", field="additional_items")
        try:
            amount = Decimal(str(data.get("amount")))
        except (InvalidOperation, ValueError):
            raise ValidationError(
                f"Additional item amount {data.get('amount')!r} is not a number",
                field="additional_items",
            )
        return cls(description=description, amount=amount)

    def to_dict(self) -> dict[str, str]:
        """JSON-safe form; amounts are kept as strings to stay exact."""
        return {"description": self.description, "amount": str(self.amount)}


@dataclass
class ResolvedRates:
    """Rates applied to one work log, with any zero-rating warnings."""

    open_rate: Decimal = Decimal("0")
    close_rate: Decimal = Decimal("0")
    warnings: list[str] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0
