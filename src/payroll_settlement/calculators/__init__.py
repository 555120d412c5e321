"""Compensation calculation engine."""

from payroll_settlement.calculators.derivation import derive
from payroll_settlement.calculators.types import Derivation, LineItem, to_amount, validate_period

__all__ = [
    "derive",
    "Derivation",
    "LineItem",
    "to_amount",
    "validate_period",
]
