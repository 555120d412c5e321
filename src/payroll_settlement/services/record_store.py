"""SQLAlchemy record store for compensation records."""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_settlement.database import store_call
from payroll_settlement.models import CompensationRecord, Employee
from payroll_settlement.services.ports import RecordFilter
from payroll_settlement.services.state_machine import (
    CompensationStateMachine,
    CompensationStatus,
)

STORE_NAME = "record store"


class SqlRecordStore:
    """Record store backed by the ``compensation_record`` table.

    Writes are flushed, never committed: the session owner decides the
    transaction boundary.
    """

    def __init__(self, session: AsyncSession, timeout: float | None = None):
        self.session = session
        self.timeout = timeout

    async def _call(self, awaitable: Any, record_id: Any = None) -> Any:
        return await store_call(awaitable, STORE_NAME, self.timeout, record_id)

    async def get(self, record_id: UUID) -> CompensationRecord | None:
        return await self._call(
            self.session.get(CompensationRecord, record_id, populate_existing=True)
        )

    async def get_many(self, record_ids: Sequence[UUID]) -> dict[UUID, CompensationRecord]:
        if not record_ids:
            return {}
        result = await self._call(
            self.session.execute(
                select(CompensationRecord)
                .where(CompensationRecord.record_id.in_(list(record_ids)))
                .execution_options(populate_existing=True)
            )
        )
        return {record.record_id: record for record in result.scalars().all()}

    async def list_records(self, filters: RecordFilter) -> list[CompensationRecord]:
        query = select(CompensationRecord)

        if filters.department:
            query = query.join(
                Employee, Employee.employee_id == CompensationRecord.employee_id
            ).where(Employee.department == filters.department)
        if filters.facility_id:
            query = query.where(CompensationRecord.facility_id == filters.facility_id)
        if filters.employee_id:
            query = query.where(CompensationRecord.employee_id == filters.employee_id)
        if filters.period:
            query = query.where(CompensationRecord.period == filters.period)
        if filters.status:
            query = query.where(CompensationRecord.status == filters.status.value)
        elif not filters.include_cancelled:
            query = query.where(CompensationRecord.status != CompensationStatus.CANCELLED.value)

        query = query.order_by(CompensationRecord.period.desc(), CompensationRecord.created_at)
        result = await self._call(self.session.execute(query))
        return list(result.scalars().all())

    async def find_occupying(self, employee_id: UUID, period: str) -> CompensationRecord | None:
        result = await self._call(
            self.session.execute(
                select(CompensationRecord)
                .where(
                    CompensationRecord.employee_id == employee_id,
                    CompensationRecord.period == period,
                    CompensationRecord.status.in_(
                        [s.value for s in CompensationStateMachine.OCCUPIES_PERIOD]
                    ),
                )
                .limit(1)
            )
        )
        return result.scalars().first()

    async def add(self, record: CompensationRecord) -> CompensationRecord:
        self.session.add(record)
        await self._call(self.session.flush(), record.record_id)
        return record

    async def save(self, record: CompensationRecord) -> CompensationRecord:
        await self._call(self.session.flush(), record.record_id)
        return record

    async def mark_paid_many(
        self,
        record_ids: Sequence[UUID],
        payment_date: date,
        from_statuses: Iterable[CompensationStatus],
    ) -> list[UUID]:
        if not record_ids:
            return []
        # Conditional update: rows whose status moved on since they were read
        # are left alone and reported by omission.
        result = await self._call(
            self.session.execute(
                update(CompensationRecord)
                .where(
                    CompensationRecord.record_id.in_(list(record_ids)),
                    CompensationRecord.status.in_([s.value for s in from_statuses]),
                )
                .values(
                    status=CompensationStatus.PAID.value,
                    payment_date=payment_date,
                    version=CompensationRecord.version + 1,
                )
                .returning(CompensationRecord.record_id)
                .execution_options(synchronize_session=False)
            )
        )
        return [row[0] for row in result.all()]

    async def restore_status(
        self, record_id: UUID, status: CompensationStatus, payment_date: date | None
    ) -> None:
        await self._call(
            self.session.execute(
                update(CompensationRecord)
                .where(CompensationRecord.record_id == record_id)
                .values(
                    status=status.value,
                    payment_date=payment_date,
                    version=CompensationRecord.version + 1,
                )
                .execution_options(synchronize_session=False)
            ),
            record_id,
        )
