"""Tests for period draft generation."""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from payroll_settlement.errors import NotFoundError, StoreUnavailableError
from payroll_settlement.models import AuditEvent, CompensationRecord
from payroll_settlement.services.compensation_service import CompensationService
from payroll_settlement.services.directory import SqlEmployeeDirectory
from payroll_settlement.services.ports import RecordFilter
from payroll_settlement.services.record_store import SqlRecordStore


async def active_count(session, period: str) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(CompensationRecord)
        .where(CompensationRecord.period == period, CompensationRecord.status != "cancelled")
    )
    return result.scalar_one()


class FlakyDirectory(SqlEmployeeDirectory):
    """Directory publishing a non-finite base compensation for one employee."""

    def __init__(self, session, broken_id):
        super().__init__(session)
        self.broken_id = broken_id

    async def list_active_employees(self, facility_id=None):
        employees = await super().list_active_employees(facility_id)
        return [
            SimpleNamespace(
                employee_id=e.employee_id,
                facility_id=e.facility_id,
                base_compensation=Decimal("NaN"),
                currency=e.currency,
                iban=e.iban,
                bank_name=e.bank_name,
            )
            if e.employee_id == self.broken_id
            else e
            for e in employees
        ]


class BlindOccupancyStore(SqlRecordStore):
    """Record store whose first occupancy check per employee and period misses.

    Simulates a concurrent run inserting between the check and the insert.
    """

    def __init__(self, session):
        super().__init__(session)
        self.missed = set()

    async def find_occupying(self, employee_id, period):
        if (employee_id, period) not in self.missed:
            self.missed.add((employee_id, period))
            return None
        return await super().find_occupying(employee_id, period)


class TestGeneratePeriod:
    async def test_basic_payroll_run(self, service: CompensationService, employees):
        """Employee with base 10,000 and no line items gets one matching draft."""
        result = await service.generate_period("2025-03")

        assert result.all_succeeded
        by_employee = {r.employee_id: r for r in result.created}
        record = by_employee[employees["ayse"].employee_id]
        assert record.status == "draft"
        assert record.period == "2025-03"
        assert record.gross_amount == Decimal("10000.00")
        assert record.total_deductions == Decimal("0.00")
        assert record.net_amount == Decimal("10000.00")
        assert record.allowances == [] and record.deductions == [] and record.bonuses == []
        assert record.signed is False

    async def test_copies_bank_fields_and_currency(self, service, employees, settings):
        result = await service.generate_period("2025-03")
        by_employee = {r.employee_id: r for r in result.created}

        ayse = by_employee[employees["ayse"].employee_id]
        assert ayse.iban == "TR330006100519786457841326"
        assert ayse.bank_name == "Ziraat"
        assert ayse.facility_id == employees["ayse"].facility_id

        # No currency on the employee: fall back to the configured default
        mehmet = by_employee[employees["mehmet"].employee_id]
        assert mehmet.currency == settings.default_currency
        assert mehmet.net_amount == Decimal("8000.00")

    async def test_only_active_employees(self, service, employees):
        result = await service.generate_period("2025-03")

        created_for = {r.employee_id for r in result.created}
        assert created_for == {
            employees["ayse"].employee_id,
            employees["mehmet"].employee_id,
        }

    async def test_idempotent(self, session, service, employees):
        first = await service.generate_period("2025-03")
        second = await service.generate_period("2025-03")

        assert len(first.created) == 2
        assert second.created == []
        assert set(second.skipped) == {r.employee_id for r in first.created}
        assert await active_count(session, "2025-03") == 2

    async def test_regeneration_after_cancellation(self, session, service, employees):
        first = await service.generate_period("2025-03")
        ayse_id = employees["ayse"].employee_id
        cancelled = next(r for r in first.created if r.employee_id == ayse_id)
        await service.cancel_record(cancelled.record_id)

        second = await service.generate_period("2025-03")

        assert [r.employee_id for r in second.created] == [ayse_id]
        assert second.created[0].record_id != cancelled.record_id
        assert second.skipped == [employees["mehmet"].employee_id]
        assert await active_count(session, "2025-03") == 2

    async def test_periods_are_independent(self, session, service, employees):
        await service.generate_period("2025-03")
        result = await service.generate_period("2025-04")

        assert len(result.created) == 2
        assert await active_count(session, "2025-04") == 2

    async def test_facility_scope(self, service, employees, remote_employee, other_facility):
        result = await service.generate_period("2025-03", other_facility.facility_id)

        assert [r.employee_id for r in result.created] == [remote_employee.employee_id]
        # Missing base compensation is treated as zero
        assert result.created[0].net_amount == Decimal("0.00")

    async def test_unknown_facility(self, session, service, employees):
        with pytest.raises(NotFoundError):
            await service.generate_period("2025-03", uuid4())
        assert await active_count(session, "2025-03") == 0

    async def test_invalid_period(self, service, employees):
        with pytest.raises(ValueError):
            await service.generate_period("2025-3")

    async def test_one_failure_does_not_abort_the_batch(self, session, settings, employees):
        broken = employees["ayse"].employee_id
        service = CompensationService(
            session, settings, directory=FlakyDirectory(session, broken)
        )

        result = await service.generate_period("2025-03")

        assert [f.employee_id for f in result.failures] == [broken]
        assert result.failures[0].error.code == "INVALID_AMOUNT"
        assert [r.employee_id for r in result.created] == [employees["mehmet"].employee_id]
        assert result.summary() == {"period": "2025-03", "created": 1, "skipped": 0, "failed": 1}

    async def test_generation_is_audited(self, session, service, employees):
        result = await service.generate_period("2025-03")
        await session.flush()

        events = (
            await session.execute(select(AuditEvent).where(AuditEvent.action == "generated"))
        ).scalars().all()
        assert {e.entity_id for e in events} == {r.record_id for r in result.created}

    async def test_listing_hides_cancelled(self, service, employees):
        result = await service.generate_period("2025-03")
        await service.cancel_record(result.created[0].record_id)

        visible = await service.list_records(RecordFilter(period="2025-03"))
        everything = await service.list_records(
            RecordFilter(period="2025-03", include_cancelled=True)
        )

        assert len(visible) == 1
        assert len(everything) == 2

    async def test_listing_filters_by_department(self, service, employees):
        await service.generate_period("2025-03")

        pharmacy = await service.list_records(RecordFilter(department="Pharmacy"))

        assert [r.employee_id for r in pharmacy] == [employees["mehmet"].employee_id]


class TestStoreFailures:
    async def test_directory_unavailable_aborts_before_writing(self, session, settings, employees):
        class DownDirectory(SqlEmployeeDirectory):
            async def list_active_employees(self, facility_id=None):
                raise StoreUnavailableError(self.STORE_NAME, "timed out")

        service = CompensationService(session, settings, directory=DownDirectory(session))

        with pytest.raises(StoreUnavailableError):
            await service.generate_period("2025-03")
        assert await active_count(session, "2025-03") == 0


class TestConcurrentRuns:
    async def test_lost_insert_race_counts_as_skip(self, session, service, settings, employees):
        first = await service.generate_period("2025-03")
        racing = CompensationService(session, settings, record_store=BlindOccupancyStore(session))

        result = await racing.generate_period("2025-03")

        assert result.created == []
        assert result.failures == []
        assert set(result.skipped) == {r.employee_id for r in first.created}
        assert await active_count(session, "2025-03") == 2

    async def test_race_does_not_block_other_employees(
        self, session, settings, employees, remote_employee
    ):
        await CompensationService(session, settings).generate_period("2025-03")
        racing = CompensationService(session, settings, record_store=BlindOccupancyStore(session))

        result = await racing.generate_period("2025-03")

        assert [r.employee_id for r in result.created] == [remote_employee.employee_id]
        assert len(result.skipped) == 2
