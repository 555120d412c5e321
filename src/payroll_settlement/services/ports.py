"""Ports the settlement engine depends on.

The engine only talks to its stores through these protocols. SQLAlchemy
implementations live next to them (record_store, directory, ledger_store);
tests and alternative deployments may inject their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Protocol, Sequence, runtime_checkable
from uuid import UUID

from payroll_settlement.services.state_machine import CompensationStatus

if TYPE_CHECKING:
    from payroll_settlement.models import CompensationRecord, Employee, Facility, LedgerEntry


@dataclass(frozen=True)
class RecordFilter:
    """Filter for listing compensation records."""

    employee_id: UUID | None = None
    department: str | None = None
    period: str | None = None
    status: CompensationStatus | None = None
    facility_id: UUID | None = None
    include_cancelled: bool = False


@dataclass(frozen=True)
class ExpenseEntry:
    """Expense entry to append to the ledger store."""

    idempotency_code: str
    amount: Decimal
    currency: str
    entry_date: date
    title: str
    description: str
    category_id: UUID | None
    facility_id: UUID | None
    source_type: str
    source_id: UUID
    payment_method: str = "bank_transfer"
    status: str = "approved"


@runtime_checkable
class RecordStore(Protocol):
    """Persistence boundary for compensation records."""

    async def get(self, record_id: UUID) -> CompensationRecord | None: ...

    async def get_many(self, record_ids: Sequence[UUID]) -> dict[UUID, CompensationRecord]: ...

    async def list_records(self, filters: RecordFilter) -> list[CompensationRecord]: ...

    async def find_occupying(self, employee_id: UUID, period: str) -> CompensationRecord | None:
        """Return the non-cancelled record for (employee, period), if any."""
        ...

    async def add(self, record: CompensationRecord) -> CompensationRecord: ...

    async def save(self, record: CompensationRecord) -> CompensationRecord:
        """Flush changes; fails with ConcurrentUpdateError on a stale version."""
        ...

    async def mark_paid_many(
        self,
        record_ids: Sequence[UUID],
        payment_date: date,
        from_statuses: Iterable[CompensationStatus],
    ) -> list[UUID]:
        """Batched paid transition; returns ids actually updated."""
        ...

    async def restore_status(
        self, record_id: UUID, status: CompensationStatus, payment_date: date | None
    ) -> None: ...


@runtime_checkable
class EmployeeDirectory(Protocol):
    """Read-only view of the personnel directory."""

    async def list_active_employees(self, facility_id: UUID | None = None) -> list[Employee]: ...

    async def get_employee(self, employee_id: UUID) -> Employee | None: ...

    async def get_employees(self, employee_ids: Iterable[UUID]) -> dict[UUID, Employee]: ...


@runtime_checkable
class FacilityRegistry(Protocol):
    """Read-only view of the facility registry."""

    async def get_facility(self, facility_id: UUID) -> Facility:
        """Return the facility or raise NotFoundError."""
        ...


@runtime_checkable
class LedgerStore(Protocol):
    """Separate financial-transactions store."""

    async def find_by_idempotency_code(self, code: str) -> LedgerEntry | None: ...

    async def create_expense_entry(self, entry: ExpenseEntry) -> LedgerEntry | None:
        """Insert the entry; return None if the idempotency code already exists."""
        ...

    async def get_or_create_category(self, name: str, entry_type: str) -> UUID: ...
