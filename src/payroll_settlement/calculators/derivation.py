"""Gross/net derivation from a base amount and line items."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, Mapping

from payroll_settlement.calculators.types import (
    Derivation,
    LineItem,
    check_range,
    coerce_line_items,
    to_amount,
)

LineItemsInput = Iterable[LineItem | Mapping[str, Any]] | None


def sum_items(items: Iterable[LineItem]) -> Decimal:
    """Sum line item amounts (empty collection sums to zero)."""
    return sum((item.amount for item in items), Decimal("0.00"))


def derive(
    base: Any,
    allowances: LineItemsInput = None,
    deductions: LineItemsInput = None,
    bonuses: LineItemsInput = None,
) -> Derivation:
    """Derive gross, total deductions and net.

    GROSS = base + Σ(allowances) + Σ(bonuses)
    TOTAL_DEDUCTIONS = Σ(deductions)
    NET = GROSS - TOTAL_DEDUCTIONS

    Pure: no side effects. Raises InvalidAmountError for non-finite or
    malformed input instead of coercing it to zero, and for totals too large
    to store.
    """
    base_amount = to_amount(base, "base amount")
    allowance_items = coerce_line_items(allowances)
    deduction_items = coerce_line_items(deductions)
    bonus_items = coerce_line_items(bonuses)

    gross = base_amount + sum_items(allowance_items) + sum_items(bonus_items)
    total_deductions = sum_items(deduction_items)
    return Derivation(
        gross=check_range(gross, "gross"),
        total_deductions=check_range(total_deductions, "total deductions"),
        net=check_range(gross - total_deductions, "net"),
    )
