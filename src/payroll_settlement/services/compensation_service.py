"""Compensation service - main entry point for settlement operations."""

from __future__ import annotations

from datetime import date
from typing import Mapping, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from payroll_settlement.config import Settings, get_settings
from payroll_settlement.models import CompensationRecord
from payroll_settlement.services.bulk_service import BulkService
from payroll_settlement.services.directory import SqlEmployeeDirectory, SqlFacilityRegistry
from payroll_settlement.services.generation_service import GenerationService
from payroll_settlement.services.ledger_poster import LedgerPoster
from payroll_settlement.services.ledger_store import SqlLedgerStore
from payroll_settlement.services.lifecycle_service import (
    LifecycleService,
    RecordChanges,
    RecordInput,
)
from payroll_settlement.services.outcomes import BulkResult, GenerationResult
from payroll_settlement.services.ports import (
    EmployeeDirectory,
    FacilityRegistry,
    LedgerStore,
    RecordFilter,
    RecordStore,
)
from payroll_settlement.services.record_store import SqlRecordStore
from payroll_settlement.services.signing_service import SigningService


class CompensationService:
    """Service for the compensation record lifecycle.

    Operations:
    - list_records / get_record: reads
    - create_record / update_record: explicit values, totals derived
    - approve_record / cancel_record / mark_paid: status transitions
    - sign: employee acknowledgement
    - bulk_mark_paid / bulk_sign: per-id outcomes
    - generate_period: drafts for every active employee

    Stores default to the SQLAlchemy adapters on ``session``; any of them can
    be replaced. The service flushes but never commits.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        record_store: RecordStore | None = None,
        directory: EmployeeDirectory | None = None,
        facilities: FacilityRegistry | None = None,
        ledger_store: LedgerStore | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        timeout = self.settings.store_timeout_seconds or None

        self.record_store = record_store or SqlRecordStore(session, timeout)
        self.directory = directory or SqlEmployeeDirectory(session, timeout)
        self.facilities = facilities or SqlFacilityRegistry(session, timeout)
        self.ledger_store = ledger_store or SqlLedgerStore(session, timeout)

        self.poster = LedgerPoster(self.ledger_store, self.directory, self.settings)
        self.lifecycle = LifecycleService(
            session, self.record_store, self.directory, self.poster, self.settings
        )
        self.signing = SigningService(session, self.record_store, self.settings)
        self.generation = GenerationService(
            session, self.record_store, self.directory, self.facilities, self.settings
        )
        self.bulk = BulkService(
            session, self.record_store, self.directory, self.poster, self.signing
        )

    async def list_records(self, filters: RecordFilter | None = None) -> list[CompensationRecord]:
        return await self.record_store.list_records(filters or RecordFilter())

    async def get_record(self, record_id: UUID) -> CompensationRecord:
        return await self.lifecycle.get_record(record_id)

    async def create_record(
        self, data: RecordInput, actor_user_id: UUID | None = None
    ) -> CompensationRecord:
        return await self.lifecycle.create_record(data, actor_user_id)

    async def update_record(
        self,
        record_id: UUID,
        changes: RecordChanges,
        actor_user_id: UUID | None = None,
        expected_version: int | None = None,
    ) -> CompensationRecord:
        return await self.lifecycle.update_record(
            record_id, changes, actor_user_id, expected_version
        )

    async def approve_record(
        self, record_id: UUID, actor_user_id: UUID | None = None
    ) -> CompensationRecord:
        return await self.lifecycle.approve_record(record_id, actor_user_id)

    async def cancel_record(
        self, record_id: UUID, actor_user_id: UUID | None = None
    ) -> CompensationRecord:
        return await self.lifecycle.cancel_record(record_id, actor_user_id)

    async def mark_paid(
        self,
        record_id: UUID,
        payment_date: date | None = None,
        actor_user_id: UUID | None = None,
    ) -> CompensationRecord:
        return await self.lifecycle.mark_paid(record_id, payment_date, actor_user_id)

    async def bulk_mark_paid(
        self,
        record_ids: Sequence[UUID],
        payment_date: date | None = None,
        actor_user_id: UUID | None = None,
    ) -> BulkResult:
        return await self.bulk.bulk_mark_paid(record_ids, payment_date, actor_user_id)

    async def sign(
        self, record_id: UUID, signer_name: str, actor_user_id: UUID | None = None
    ) -> CompensationRecord:
        return await self.signing.sign(record_id, signer_name, actor_user_id)

    async def bulk_sign(
        self,
        record_ids: Sequence[UUID],
        name_by_employee: Mapping[UUID | str, str],
        actor_user_id: UUID | None = None,
    ) -> BulkResult:
        return await self.bulk.bulk_sign(record_ids, name_by_employee, actor_user_id)

    async def generate_period(
        self,
        period: str,
        facility_id: UUID | None = None,
        actor_user_id: UUID | None = None,
    ) -> GenerationResult:
        return await self.generation.generate_period(period, facility_id, actor_user_id)
