"""Tests for record creation, edits and status transitions."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update

from payroll_settlement.errors import (
    ConcurrentUpdateError,
    InvalidAmountError,
    InvalidStateError,
    NotFoundError,
    StoreUnavailableError,
)
from payroll_settlement.models import CompensationRecord, LedgerEntry
from payroll_settlement.services.audit import AuditRecorder
from payroll_settlement.services.compensation_service import CompensationService
from payroll_settlement.services.ledger_poster import idempotency_code
from payroll_settlement.services.lifecycle_service import RecordChanges, RecordInput
from payroll_settlement.services.state_machine import CompensationStatus

from .test_generation import BlindOccupancyStore
from .test_ledger_poster import FailingLedgerStore, ledger_count


@pytest.fixture
async def record(service: CompensationService, employees) -> CompensationRecord:
    """Draft with base 10,000, transport 500 and tax 1,200."""
    return await service.create_record(
        RecordInput(
            employee_id=employees["ayse"].employee_id,
            period="2025-03",
            base_amount=10000,
            allowances=[{"name": "transport", "amount": 500}],
            deductions=[{"name": "tax", "amount": 1200}],
            bonuses=[],
            notes="first month",
        )
    )


class TestCreateRecord:
    async def test_line_items_scenario(self, record):
        assert record.status == "draft"
        assert record.gross_amount == Decimal("10500.00")
        assert record.total_deductions == Decimal("1200.00")
        assert record.net_amount == Decimal("9300.00")
        assert record.allowances == [{"name": "transport", "amount": "500.00"}]
        assert record.notes == "first month"
        assert record.version == 1

    async def test_defaults_from_employee(self, record, employees):
        assert record.facility_id == employees["ayse"].facility_id
        assert record.currency == "TRY"
        assert record.iban == "TR330006100519786457841326"

    async def test_created_as_approved(self, service, employees):
        record = await service.create_record(
            RecordInput(
                employee_id=employees["mehmet"].employee_id,
                period="2025-03",
                base_amount="8000",
                status=CompensationStatus.APPROVED,
            )
        )
        assert record.status == "approved"

    async def test_cannot_create_paid(self, service, employees):
        with pytest.raises(InvalidStateError):
            await service.create_record(
                RecordInput(
                    employee_id=employees["mehmet"].employee_id,
                    period="2025-03",
                    base_amount=1,
                    status=CompensationStatus.PAID,
                )
            )

    async def test_one_active_record_per_period(self, service, record, employees):
        with pytest.raises(InvalidStateError):
            await service.create_record(
                RecordInput(
                    employee_id=employees["ayse"].employee_id,
                    period="2025-03",
                    base_amount=1,
                )
            )

    async def test_lost_create_race(self, session, settings, record, employees):
        racing = CompensationService(session, settings, record_store=BlindOccupancyStore(session))

        with pytest.raises(InvalidStateError) as exc_info:
            await racing.create_record(
                RecordInput(
                    employee_id=employees["ayse"].employee_id,
                    period="2025-03",
                    base_amount=1,
                )
            )
        assert exc_info.value.code == "INVALID_STATE"

        count = (
            await session.execute(select(func.count()).select_from(CompensationRecord))
        ).scalar_one()
        assert count == 1
        assert (await racing.get_record(record.record_id)).net_amount == Decimal("9300.00")

    async def test_unknown_employee(self, service, employees):
        with pytest.raises(NotFoundError):
            await service.create_record(
                RecordInput(employee_id=uuid4(), period="2025-03", base_amount=1)
            )

    async def test_audited(self, session, service, record):
        events = await AuditRecorder(session).events_for(record.record_id)
        assert [e.action for e in events] == ["created"]
        assert events[0].after_json["net_amount"] == "9300.00"


class TestUpdateRecord:
    async def test_partial_update_merges_stored_items(self, service, record):
        updated = await service.update_record(
            record.record_id,
            RecordChanges(deductions=[{"name": "tax", "amount": 1000}]),
        )

        assert updated.allowances == [{"name": "transport", "amount": "500.00"}]
        assert updated.gross_amount == Decimal("10500.00")
        assert updated.net_amount == Decimal("9500.00")
        assert updated.version == 2

    async def test_base_change_recomputes(self, service, record):
        updated = await service.update_record(
            record.record_id,
            RecordChanges(base_amount="12000", bonuses=[{"name": "holiday", "amount": 300}]),
        )

        assert updated.gross_amount == Decimal("12800.00")
        assert updated.net_amount == Decimal("11600.00")
        assert updated.net_amount == updated.gross_amount - updated.total_deductions

    async def test_update_on_paid_fails(self, service, record):
        await service.mark_paid(record.record_id)

        with pytest.raises(InvalidStateError):
            await service.update_record(
                record.record_id,
                RecordChanges(allowances=[{"name": "transport", "amount": 900}]),
            )

        reloaded = await service.get_record(record.record_id)
        assert reloaded.net_amount == Decimal("9300.00")

    async def test_notes_editable_after_payment(self, service, record):
        await service.mark_paid(record.record_id)

        updated = await service.update_record(record.record_id, RecordChanges(notes="paid late"))

        assert updated.notes == "paid late"

    async def test_expected_version_mismatch(self, service, record):
        with pytest.raises(ConcurrentUpdateError):
            await service.update_record(
                record.record_id,
                RecordChanges(base_amount=1),
                expected_version=record.version + 1,
            )

    async def test_stale_write_detected(self, session, service, record):
        """A concurrent writer bumped the version between read and write."""
        await session.execute(
            update(CompensationRecord)
            .where(CompensationRecord.record_id == record.record_id)
            .values(version=CompensationRecord.version + 1)
            .execution_options(synchronize_session=False)
        )
        record.notes = "lost update"

        with pytest.raises(ConcurrentUpdateError):
            await service.record_store.save(record)

    async def test_invalid_amount(self, service, record):
        with pytest.raises(InvalidAmountError):
            await service.update_record(record.record_id, RecordChanges(base_amount="NaN"))

    async def test_not_found(self, service, employees):
        with pytest.raises(NotFoundError):
            await service.update_record(uuid4(), RecordChanges(notes="x"))


class TestTransitions:
    async def test_approve(self, service, record):
        approved = await service.approve_record(record.record_id)
        assert approved.status == "approved"

    async def test_cancel(self, service, record):
        cancelled = await service.cancel_record(record.record_id)
        assert cancelled.status == "cancelled"

        with pytest.raises(InvalidStateError):
            await service.approve_record(record.record_id)

    async def test_settlement_scenario(self, session, service, record):
        paid = await service.mark_paid(record.record_id, date(2025, 3, 31))

        assert paid.status == "paid"
        assert paid.payment_date == date(2025, 3, 31)
        entries = (await session.execute(select(LedgerEntry))).scalars().all()
        assert len(entries) == 1
        assert entries[0].amount == Decimal("9300.00")
        assert entries[0].idempotency_code == idempotency_code(record.record_id)

    async def test_payment_date_defaults_to_today(self, service, record):
        paid = await service.mark_paid(record.record_id)
        assert paid.payment_date == date.today()

    async def test_existing_entry_is_not_duplicated(self, session, service, record):
        await service.poster.post_if_absent(record)

        await service.mark_paid(record.record_id)

        assert await ledger_count(session) == 1
        events = await AuditRecorder(session).events_for(record.record_id)
        paid_event = events[-1]
        assert paid_event.action == "status_change:draft:paid"
        assert paid_event.after_json["ledger_entry_created"] is False

    async def test_mark_paid_twice_fails(self, session, service, record):
        await service.mark_paid(record.record_id)

        with pytest.raises(InvalidStateError):
            await service.mark_paid(record.record_id)
        assert await ledger_count(session) == 1

    async def test_mark_paid_on_cancelled_fails(self, session, service, record):
        await service.cancel_record(record.record_id)

        with pytest.raises(InvalidStateError):
            await service.mark_paid(record.record_id)
        assert await ledger_count(session) == 0

    async def test_mark_paid_from_approved(self, service, record):
        await service.approve_record(record.record_id)
        paid = await service.mark_paid(record.record_id)
        assert paid.status == "paid"

    async def test_mark_paid_unknown_record(self, service, employees):
        with pytest.raises(NotFoundError):
            await service.mark_paid(uuid4())

    async def test_posting_failure_keeps_previous_status(self, session, settings, record):
        service = CompensationService(session, settings, ledger_store=FailingLedgerStore())

        with pytest.raises(StoreUnavailableError):
            await service.mark_paid(record.record_id)

        # the instance the caller already holds reflects the stored row
        assert record.status == "draft"
        assert record.payment_date is None
        assert record.net_amount == Decimal("9300.00")

        reloaded = await service.get_record(record.record_id)
        assert reloaded.status == "draft"
        assert reloaded.payment_date is None
        assert await ledger_count(session) == 0

    async def test_transitions_are_audited(self, session, service, record):
        await service.approve_record(record.record_id)
        await service.mark_paid(record.record_id)

        events = await AuditRecorder(session).events_for(record.record_id)
        assert [e.action for e in events] == [
            "created",
            "status_change:draft:approved",
            "status_change:approved:paid",
        ]


async def test_record_count_unchanged_by_failed_create(session, service, record, employees):
    with pytest.raises(InvalidStateError):
        await service.create_record(
            RecordInput(employee_id=employees["ayse"].employee_id, period="2025-03", base_amount=5)
        )
    count = (
        await session.execute(select(func.count()).select_from(CompensationRecord))
    ).scalar_one()
    assert count == 1
