"""
Totals Calculator
Computes a claim's amount from its line items

Works on anything shaped like a line item: request rows and stored rows
expose the same attribute names, so the amount computed before persisting
and the amount recomputed from stored rows agree.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

ZERO = Decimal("0.00")
CENT = Decimal("0.01")

# Largest values the Numeric(12, 2) amount columns and Integer day columns hold
MAX_AMOUNT = Decimal("9999999999.99")
MAX_DAYS = 2147483647

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _finite_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


def parse_amount(value: Any) -> Decimal:
    """
    Parse a money amount, clamping anything invalid or negative to zero

    Values too large to carry to the cent count as invalid.

    Args:
        value: Number, numeric string, or anything else

    Returns:
        Decimal: Non-negative amount quantized to two places
    """
    amount = _finite_decimal(value)
    if amount is None or amount < 0:
        return ZERO
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return ZERO


def exceeds_max_amount(value: Any) -> bool:
    """Whether a raw amount is a valid number too large to store"""
    amount = _finite_decimal(value)
    return amount is not None and amount > MAX_AMOUNT


def parse_days(value: Any) -> int:
    """
    Parse a day count the lenient way: leading integer part, else zero

    Args:
        value: Number, numeric string, or anything else

    Returns:
        int: Non-negative whole number of days
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        days = value
    elif isinstance(value, (float, Decimal)):
        try:
            days = int(value)
        except (OverflowError, ValueError):
            return 0
    else:
        match = _LEADING_INT.match(str(value))
        if not match:
            return 0
        days = int(match.group(1))
    return max(days, 0)


def allowance_line_total(entry: Any) -> Decimal:
    try:
        return (parse_amount(entry.amount) * parse_days(entry.no_of_days)).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return ZERO


@dataclass(frozen=True)
class ClaimTotals:
    """Per-category and grand totals"""
    travel: Decimal
    allowance: Decimal
    lodging: Decimal
    meal: Decimal

    @property
    def grand(self) -> Decimal:
        return self.travel + self.allowance + self.lodging + self.meal

    def as_dict(self) -> dict:
        return {
            "travel": self.travel,
            "allowance": self.allowance,
            "lodging": self.lodging,
            "meal": self.meal,
            "grand": self.grand,
        }


def compute_totals(
    travel: Iterable[Any] = (),
    allowances: Iterable[Any] = (),
    hotel: Iterable[Any] = (),
    food: Iterable[Any] = (),
) -> ClaimTotals:
    """
    Compute claim totals; never raises on bad amounts

    Args:
        travel: Travel segments (fare_amount)
        allowances: Journey, return and stay entries together (amount, no_of_days)
        hotel: Hotel bills (bill_amount)
        food: Food bills (bill_amount)

    Returns:
        ClaimTotals
    """
    return ClaimTotals(
        travel=sum((parse_amount(row.fare_amount) for row in travel), ZERO),
        allowance=sum((allowance_line_total(row) for row in allowances), ZERO),
        lodging=sum((parse_amount(row.bill_amount) for row in hotel), ZERO),
        meal=sum((parse_amount(row.bill_amount) for row in food), ZERO),
    )


def totals_for_items(items) -> ClaimTotals:
    """Totals for a LineItems bundle"""
    return compute_totals(items.travel, items.allowances, items.hotel, items.food)
