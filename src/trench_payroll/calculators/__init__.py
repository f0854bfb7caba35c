"""Rate resolution and earnings calculation."""

from trench_payroll.calculators.earnings import (
    compute_earnings,
    normalize_quantity,
    parse_additional_items,
    round_to_cents,
)
from trench_payroll.calculators.rate_resolver import RateResolver
from trench_payroll.calculators.types import AdditionalItem, RateCategory, RateUnit, ResolvedRates

__all__ = [
    "AdditionalItem",
    "RateCategory",
    "RateResolver",
    "RateUnit",
    "ResolvedRates",
    "compute_earnings",
    "normalize_quantity",
    "parse_additional_items",
    "round_to_cents",
]
