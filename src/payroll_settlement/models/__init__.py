"""ORM models for the settlement engine."""

from payroll_settlement.models.audit import AuditEvent
from payroll_settlement.models.base import Base
from payroll_settlement.models.compensation import CompensationRecord
from payroll_settlement.models.directory import Employee, Facility
from payroll_settlement.models.ledger import ExpenseCategory, LedgerEntry

__all__ = [
    "AuditEvent",
    "Base",
    "CompensationRecord",
    "Employee",
    "ExpenseCategory",
    "Facility",
    "LedgerEntry",
]
