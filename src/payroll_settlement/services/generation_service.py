"""Generation of draft compensation records for a pay period."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_settlement.calculators.derivation import derive
from payroll_settlement.calculators.types import to_amount, validate_period
from payroll_settlement.errors import CompensationError, StoreUnavailableError
from payroll_settlement.models import CompensationRecord
from payroll_settlement.services.audit import AuditRecorder
from payroll_settlement.services.outcomes import GenerationFailure, GenerationResult
from payroll_settlement.services.ports import EmployeeDirectory, FacilityRegistry, RecordStore
from payroll_settlement.services.state_machine import CompensationStatus

if TYPE_CHECKING:
    from payroll_settlement.config import Settings
    from payroll_settlement.models import Employee

logger = logging.getLogger(__name__)


class GenerationService:
    """Creates one draft per active employee for a period.

    Key invariants:
    1. At most one non-cancelled record per (employee, period); re-running
       skips employees that already have one (partial unique index backs it).
    2. Cancelled records do not block regeneration.
    3. One employee's failure never aborts the others: each employee is
       processed inside its own savepoint.
    """

    def __init__(
        self,
        session: AsyncSession,
        record_store: RecordStore,
        directory: EmployeeDirectory,
        facilities: FacilityRegistry,
        settings: Settings,
    ):
        self.session = session
        self.record_store = record_store
        self.directory = directory
        self.facilities = facilities
        self.settings = settings
        self.audit = AuditRecorder(session)

    async def generate_period(
        self,
        period: str,
        facility_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> GenerationResult:
        """Generate drafts for every active employee in scope lacking one.

        Scope errors (unknown facility, directory unavailable) abort before any
        record is written; per-employee errors are collected in the result.
        """
        validate_period(period)
        if facility_id is not None:
            await self.facilities.get_facility(facility_id)

        employees = await self.directory.list_active_employees(facility_id)
        result = GenerationResult(period=period)

        for employee in employees:
            employee_id = employee.employee_id
            try:
                async with self.session.begin_nested():
                    existing = await self.record_store.find_occupying(employee_id, period)
                    if existing is not None:
                        result.skipped.append(employee_id)
                        continue
                    record = self.build_draft(employee, period)
                    self.audit.record(
                        record.record_id,
                        "generated",
                        actor_user_id=actor_user_id,
                        after={"period": period, "net_amount": str(record.net_amount)},
                    )
                    await self.record_store.add(record)
                result.created.append(record)
            except IntegrityError as exc:
                await self._handle_conflict(result, employee_id, exc)
            except CompensationError as exc:
                logger.exception(
                    "Failed to generate %s compensation record for employee %s",
                    period,
                    employee_id,
                )
                result.failures.append(GenerationFailure(employee_id=employee_id, error=exc))

        logger.info("Generated compensation records: %s", result.summary())
        return result

    def build_draft(self, employee: Employee, period: str) -> CompensationRecord:
        """Draft from the employee's current base compensation, no line items."""
        base = to_amount(
            employee.base_compensation if employee.base_compensation is not None else 0,
            "base compensation",
        )
        record = CompensationRecord(
            record_id=uuid4(),
            employee_id=employee.employee_id,
            facility_id=employee.facility_id,
            period=period,
            base_amount=base,
            currency=employee.currency or self.settings.default_currency,
            allowances=[],
            deductions=[],
            bonuses=[],
            status=CompensationStatus.DRAFT.value,
            iban=employee.iban,
            bank_name=employee.bank_name,
            signed=False,
        )
        record.apply_derivation(derive(base))
        return record

    async def _handle_conflict(
        self, result: GenerationResult, employee_id: UUID, exc: IntegrityError
    ) -> None:
        """A concurrent run inserted first: count it as a skip if a record now exists."""
        try:
            existing = await self.record_store.find_occupying(employee_id, result.period)
        except CompensationError as lookup_error:
            result.failures.append(GenerationFailure(employee_id=employee_id, error=lookup_error))
            return

        if existing is not None:
            logger.info(
                "Employee %s received a %s record concurrently; skipping",
                employee_id,
                result.period,
            )
            result.skipped.append(employee_id)
            return

        logger.error("Insert rejected for employee %s: %s", employee_id, exc.orig)
        result.failures.append(
            GenerationFailure(
                employee_id=employee_id,
                error=StoreUnavailableError("record store", f"insert rejected: {exc.orig}"),
            )
        )
