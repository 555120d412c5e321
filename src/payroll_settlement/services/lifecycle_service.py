"""Lifecycle manager: creation, edits and status transitions of records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Iterable, Mapping
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_settlement.calculators.derivation import derive
from payroll_settlement.calculators.types import (
    LineItem,
    coerce_line_items,
    to_amount,
    validate_period,
)
from payroll_settlement.errors import ConcurrentUpdateError, InvalidStateError, NotFoundError
from payroll_settlement.models import CompensationRecord
from payroll_settlement.services.audit import AuditRecorder
from payroll_settlement.services.ledger_poster import LedgerPoster, PostResult
from payroll_settlement.services.ports import EmployeeDirectory, RecordStore
from payroll_settlement.services.state_machine import (
    CompensationStateMachine,
    CompensationStatus,
)

if TYPE_CHECKING:
    from payroll_settlement.config import Settings

logger = logging.getLogger(__name__)

LineItemsInput = Iterable[LineItem | Mapping[str, Any]]


@dataclass
class RecordInput:
    """Explicit values for creating a record outside generation."""

    employee_id: UUID
    period: str
    base_amount: Decimal | int | str
    currency: str | None = None
    facility_id: UUID | None = None
    allowances: LineItemsInput = field(default_factory=list)
    deductions: LineItemsInput = field(default_factory=list)
    bonuses: LineItemsInput = field(default_factory=list)
    status: CompensationStatus = CompensationStatus.DRAFT
    notes: str | None = None
    iban: str | None = None
    bank_name: str | None = None


@dataclass
class RecordChanges:
    """Partial update. None means "leave unchanged"."""

    base_amount: Decimal | int | str | None = None
    currency: str | None = None
    allowances: LineItemsInput | None = None
    deductions: LineItemsInput | None = None
    bonuses: LineItemsInput | None = None
    notes: str | None = None
    iban: str | None = None
    bank_name: str | None = None

    @property
    def touches_amounts(self) -> bool:
        return any(
            value is not None
            for value in (self.base_amount, self.allowances, self.deductions, self.bonuses)
        )


class LifecycleService:
    """Enforces legal status transitions and keeps derived totals consistent.

    Operations:
    - create_record: insert with explicit values (draft or approved)
    - update_record: merge line items, recompute totals
    - approve_record: draft → approved
    - mark_paid: draft|approved → paid, posting the ledger entry
    - cancel_record: draft|approved → cancelled

    Ledger posting is a precondition of the paid transition: status change
    and posting share one savepoint, so a posting failure leaves the record
    in its previous status and the error reaches the caller.
    """

    CREATABLE_STATUSES = frozenset({CompensationStatus.DRAFT, CompensationStatus.APPROVED})

    def __init__(
        self,
        session: AsyncSession,
        record_store: RecordStore,
        directory: EmployeeDirectory,
        poster: LedgerPoster,
        settings: Settings,
    ):
        self.session = session
        self.record_store = record_store
        self.directory = directory
        self.poster = poster
        self.settings = settings
        self.audit = AuditRecorder(session)

    async def get_record(self, record_id: UUID) -> CompensationRecord:
        record = await self.record_store.get(record_id)
        if record is None:
            raise NotFoundError("Compensation record", record_id)
        return record

    async def create_record(
        self, data: RecordInput, actor_user_id: UUID | None = None
    ) -> CompensationRecord:
        """Create a record from explicit values, deriving its totals."""
        validate_period(data.period)
        status = CompensationStateMachine.coerce(data.status)
        if status not in self.CREATABLE_STATUSES:
            raise InvalidStateError(
                "new", status, "records are created as draft or approved; use mark_paid/cancel"
            )

        employee = await self.directory.get_employee(data.employee_id)
        if employee is None:
            raise NotFoundError("Employee", data.employee_id)

        existing = await self.record_store.find_occupying(data.employee_id, data.period)
        if existing is not None:
            raise InvalidStateError(
                existing.status,
                status,
                f"employee {data.employee_id} already has record {existing.record_id} "
                f"for period {data.period}",
            )

        allowances = coerce_line_items(data.allowances)
        deductions = coerce_line_items(data.deductions)
        bonuses = coerce_line_items(data.bonuses)
        derivation = derive(data.base_amount, allowances, deductions, bonuses)

        record = CompensationRecord(
            record_id=uuid4(),
            employee_id=data.employee_id,
            facility_id=data.facility_id or employee.facility_id,
            period=data.period,
            base_amount=to_amount(data.base_amount, "base amount"),
            currency=data.currency or employee.currency or self.settings.default_currency,
            allowances=CompensationRecord.serialize_items(allowances),
            deductions=CompensationRecord.serialize_items(deductions),
            bonuses=CompensationRecord.serialize_items(bonuses),
            status=status.value,
            notes=data.notes,
            iban=data.iban if data.iban is not None else employee.iban,
            bank_name=data.bank_name if data.bank_name is not None else employee.bank_name,
            signed=False,
        )
        record.apply_derivation(derivation)

        try:
            async with self.session.begin_nested():
                self.audit.record(
                    record.record_id,
                    "created",
                    actor_user_id=actor_user_id,
                    after={"status": status.value, "net_amount": str(derivation.net)},
                )
                await self.record_store.add(record)
        except IntegrityError as exc:
            # a concurrent create took the period first
            raise InvalidStateError(
                "new",
                status,
                f"employee {data.employee_id} already has a record for period {data.period}",
            ) from exc
        return record

    async def update_record(
        self,
        record_id: UUID,
        changes: RecordChanges,
        actor_user_id: UUID | None = None,
        expected_version: int | None = None,
    ) -> CompensationRecord:
        """Apply a partial update.

        Line items not supplied are taken from the stored record, so totals
        are always recomputed from the full set. With ``expected_version``
        the write is rejected when the record moved on since the caller read
        it; without it the version check still guards the read-modify-write
        performed here.
        """
        record = await self.get_record(record_id)
        if expected_version is not None and record.version != expected_version:
            raise ConcurrentUpdateError(record_id)

        if changes.touches_amounts:
            if not CompensationStateMachine.can_modify_amounts(record.status):
                raise InvalidStateError(
                    record.status,
                    record.status,
                    "amounts can only be edited while draft or approved",
                )

            base = record.base_amount if changes.base_amount is None else changes.base_amount
            allowances = coerce_line_items(
                record.allowance_items if changes.allowances is None else changes.allowances
            )
            deductions = coerce_line_items(
                record.deduction_items if changes.deductions is None else changes.deductions
            )
            bonuses = coerce_line_items(
                record.bonus_items if changes.bonuses is None else changes.bonuses
            )
            before = {"net_amount": str(record.net_amount)}
            derivation = derive(base, allowances, deductions, bonuses)

            record.base_amount = to_amount(base, "base amount")
            record.allowances = CompensationRecord.serialize_items(allowances)
            record.deductions = CompensationRecord.serialize_items(deductions)
            record.bonuses = CompensationRecord.serialize_items(bonuses)
            record.apply_derivation(derivation)
            self.audit.record(
                record_id,
                "amounts_updated",
                actor_user_id=actor_user_id,
                before=before,
                after={"net_amount": str(derivation.net)},
            )

        if changes.currency is not None:
            if not CompensationStateMachine.can_modify_amounts(record.status):
                raise InvalidStateError(
                    record.status, record.status, "currency is locked once paid or cancelled"
                )
            record.currency = changes.currency
        if changes.notes is not None:
            record.notes = changes.notes
        if changes.iban is not None:
            record.iban = changes.iban
        if changes.bank_name is not None:
            record.bank_name = changes.bank_name

        return await self.record_store.save(record)

    async def approve_record(
        self, record_id: UUID, actor_user_id: UUID | None = None
    ) -> CompensationRecord:
        return await self._transition(record_id, CompensationStatus.APPROVED, actor_user_id)

    async def cancel_record(
        self, record_id: UUID, actor_user_id: UUID | None = None
    ) -> CompensationRecord:
        """Cancel a record. Previously posted ledger entries are left untouched."""
        return await self._transition(record_id, CompensationStatus.CANCELLED, actor_user_id)

    async def mark_paid(
        self,
        record_id: UUID,
        payment_date: date | None = None,
        actor_user_id: UUID | None = None,
    ) -> CompensationRecord:
        """Mark a record paid and post its ledger entry.

        Raises InvalidStateError from paid/cancelled. A posting failure
        rolls the transition back and propagates.
        """
        record = await self.get_record(record_id)
        from_status = CompensationStateMachine.coerce(record.status)
        CompensationStateMachine.validate_transition(from_status, CompensationStatus.PAID)

        try:
            async with self.session.begin_nested():
                record.status = CompensationStatus.PAID.value
                record.payment_date = payment_date or date.today()
                posted = await self.poster.post_if_absent(record)
                self._audit_paid(record, from_status, posted, actor_user_id)
                await self.record_store.save(record)
        except Exception:
            logger.exception(
                "Settlement of compensation record %s failed; status stays '%s'",
                record_id,
                from_status.value,
            )
            # discard the unflushed transition; the caller keeps a usable record
            await self.session.refresh(record)
            raise

        return record

    def _audit_paid(
        self,
        record: CompensationRecord,
        from_status: CompensationStatus,
        posted: PostResult,
        actor_user_id: UUID | None,
    ) -> None:
        self.audit.status_change(
            record.record_id,
            from_status.value,
            CompensationStatus.PAID.value,
            actor_user_id=actor_user_id,
            details={
                "payment_date": record.payment_date.isoformat(),
                "ledger_entry_id": str(posted.entry_id),
                "idempotency_code": posted.idempotency_code,
                "ledger_entry_created": posted.is_new,
            },
        )

    async def _transition(
        self,
        record_id: UUID,
        to_status: CompensationStatus,
        actor_user_id: UUID | None,
    ) -> CompensationRecord:
        record = await self.get_record(record_id)
        from_status = CompensationStateMachine.coerce(record.status)
        CompensationStateMachine.validate_transition(from_status, to_status)

        record.status = to_status.value
        self.audit.status_change(record_id, from_status.value, to_status.value, actor_user_id)
        return await self.record_store.save(record)
