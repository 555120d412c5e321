"""Type definitions for compensation calculations."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from payroll_settlement.errors import InvalidAmountError

CENTS = Decimal("0.01")

# Numeric(14, 2) columns hold at most 12 integer digits
MAX_AMOUNT = Decimal("1000000000000")

_PERIOD_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def to_amount(value: Any, field_name: str = "amount") -> Decimal:
    """Convert a monetary input to a cent-precision Decimal.

    Raises InvalidAmountError for non-numeric, non-finite or out-of-range
    input. Floats go through ``str`` so 0.1 stays 0.10 rather than its binary
    expansion.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(f"{field_name} must be a number, got {value!r}")
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(f"{field_name} is not a valid amount: {value!r}") from None

    if not amount.is_finite():
        raise InvalidAmountError(f"{field_name} must be finite, got {value!r}")
    try:
        amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmountError(f"{field_name} is out of range: {value!r}") from None
    return check_range(amount, field_name)


def check_range(amount: Decimal, field_name: str = "amount") -> Decimal:
    """Reject amounts the money columns cannot store."""
    if abs(amount) >= MAX_AMOUNT:
        raise InvalidAmountError(f"{field_name} is out of range: {amount}")
    return amount


def validate_period(period: str) -> str:
    """Validate a YYYY-MM pay period key."""
    if not isinstance(period, str) or not _PERIOD_RE.match(period):
        raise ValueError(f"Period must be in YYYY-MM form, got {period!r}")
    return period


@dataclass(frozen=True)
class LineItem:
    """A named monetary adjustment (allowance, deduction, or bonus).

    Negative amounts are accepted as clawbacks; they are summed like any other.
    """

    name: str
    amount: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidAmountError("Line item name must be a non-empty string")
        object.__setattr__(self, "amount", to_amount(self.amount, f"line item '{self.name}'"))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LineItem:
        try:
            return cls(name=data["name"], amount=data["amount"])
        except KeyError as exc:
            raise InvalidAmountError(f"Line item is missing '{exc.args[0]}'") from None

    def to_dict(self) -> dict[str, str]:
        """Serialized form stored in JSON columns (amount as decimal string)."""
        return {"name": self.name, "amount": str(self.amount)}


def coerce_line_items(items: Iterable[LineItem | Mapping[str, Any]] | None) -> tuple[LineItem, ...]:
    """Normalize a mixed collection of LineItem/dicts into LineItems, preserving order."""
    if items is None:
        return ()
    return tuple(
        item if isinstance(item, LineItem) else LineItem.from_dict(item) for item in items
    )


@dataclass(frozen=True)
class Derivation:
    """Derived monetary outputs of a compensation record."""

    gross: Decimal
    total_deductions: Decimal
    net: Decimal
