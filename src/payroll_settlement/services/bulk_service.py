"""Bulk operations over many compensation records."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Mapping, Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_settlement.errors import (
    CompensationError,
    InvalidStateError,
    NotFoundError,
    StoreUnavailableError,
)
from payroll_settlement.services.audit import AuditRecorder
from payroll_settlement.services.ledger_poster import LedgerPoster
from payroll_settlement.services.outcomes import BulkResult, ItemOutcome
from payroll_settlement.services.ports import EmployeeDirectory, RecordStore
from payroll_settlement.services.signing_service import SigningService
from payroll_settlement.services.state_machine import (
    CompensationStateMachine,
    CompensationStatus,
)

if TYPE_CHECKING:
    from payroll_settlement.models import CompensationRecord

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = (CompensationStatus.DRAFT, CompensationStatus.APPROVED)


def _distinct(ids: Sequence[UUID]) -> list[UUID]:
    seen: set[UUID] = set()
    ordered = []
    for record_id in ids:
        if record_id not in seen:
            seen.add(record_id)
            ordered.append(record_id)
    return ordered


class BulkService:
    """Fans lifecycle and signing operations out over many ids.

    Every distinct input id gets exactly one outcome, in input order; one id's
    failure never prevents processing of the others.
    """

    def __init__(
        self,
        session: AsyncSession,
        record_store: RecordStore,
        directory: EmployeeDirectory,
        poster: LedgerPoster,
        signing: SigningService,
    ):
        self.session = session
        self.record_store = record_store
        self.directory = directory
        self.poster = poster
        self.signing = signing
        self.audit = AuditRecorder(session)

    async def bulk_mark_paid(
        self,
        record_ids: Sequence[UUID],
        payment_date: date | None = None,
        actor_user_id: UUID | None = None,
    ) -> BulkResult:
        """Mark many records paid.

        1. Load all ids in one query; missing ids and terminal records fail.
        2. Transition the eligible ones in one batched, status-guarded UPDATE.
        3. Post each ledger entry individually (per-record idempotency code).
           A failed posting restores that record's previous status.
        """
        ids = _distinct(record_ids)
        paid_on = payment_date or date.today()
        outcomes = {record_id: ItemOutcome(record_id=record_id) for record_id in ids}

        records = await self.record_store.get_many(ids)
        previous: dict[UUID, tuple[CompensationStatus, date | None]] = {}
        for record_id in ids:
            record = records.get(record_id)
            if record is None:
                outcomes[record_id].error = NotFoundError("Compensation record", record_id)
                continue
            status = CompensationStateMachine.coerce(record.status)
            if not CompensationStateMachine.can_transition(status, CompensationStatus.PAID):
                outcomes[record_id].error = InvalidStateError(status, CompensationStatus.PAID)
                continue
            previous[record_id] = (status, record.payment_date)

        eligible = [record_id for record_id in ids if record_id in previous]
        updated = set(
            await self.record_store.mark_paid_many(eligible, paid_on, PAYABLE_STATUSES)
        )
        for record_id in eligible:
            if record_id not in updated:
                outcomes[record_id].error = InvalidStateError(
                    previous[record_id][0],
                    CompensationStatus.PAID,
                    "status changed before the batch update",
                )

        paid_records = await self.record_store.get_many([i for i in eligible if i in updated])
        for record_id in eligible:
            if record_id not in updated:
                continue
            record = paid_records[record_id]
            from_status, old_payment_date = previous[record_id]
            try:
                async with self.session.begin_nested():
                    posted = await self.poster.post_if_absent(record)
            except (CompensationError, IntegrityError) as exc:
                logger.exception(
                    "Ledger posting failed for compensation record %s; restoring '%s'",
                    record_id,
                    from_status.value,
                )
                await self.record_store.restore_status(record_id, from_status, old_payment_date)
                outcomes[record_id].error = (
                    exc
                    if isinstance(exc, CompensationError)
                    else StoreUnavailableError("ledger store", str(exc.orig))
                )
                continue

            self.audit.status_change(
                record_id,
                from_status.value,
                CompensationStatus.PAID.value,
                actor_user_id=actor_user_id,
                details={
                    "payment_date": paid_on.isoformat(),
                    "ledger_entry_id": str(posted.entry_id),
                    "idempotency_code": posted.idempotency_code,
                    "ledger_entry_created": posted.is_new,
                    "bulk": True,
                },
            )
            outcomes[record_id].record = record

        await self.session.flush()

        result = BulkResult(outcomes=[outcomes[record_id] for record_id in ids])
        logger.info(
            "Bulk mark-paid: %d succeeded, %d failed",
            len(result.succeeded),
            len(result.failed),
        )
        return result

    async def bulk_sign(
        self,
        record_ids: Sequence[UUID],
        name_by_employee: Mapping[UUID | str, str],
        actor_user_id: UUID | None = None,
    ) -> BulkResult:
        """Sign many records.

        The signer name is looked up by the record's employee id; when absent
        the employee's directory name is used.
        """
        names = {str(key): value for key, value in name_by_employee.items()}
        ids = _distinct(record_ids)
        result = BulkResult()

        for record_id in ids:
            outcome = ItemOutcome(record_id=record_id)
            result.outcomes.append(outcome)
            try:
                async with self.session.begin_nested():
                    signer = await self._signer_name(record_id, names)
                    outcome.record = await self.signing.sign(record_id, signer, actor_user_id)
            except CompensationError as exc:
                logger.exception("Signing failed for compensation record %s", record_id)
                outcome.record = None
                outcome.error = exc

        logger.info(
            "Bulk sign: %d succeeded, %d failed",
            len(result.succeeded),
            len(result.failed),
        )
        return result

    async def _signer_name(self, record_id: UUID, names: Mapping[str, str]) -> str:
        record: CompensationRecord | None = await self.record_store.get(record_id)
        if record is None:
            raise NotFoundError("Compensation record", record_id)

        name = names.get(str(record.employee_id))
        if name and name.strip():
            return name

        employee = await self.directory.get_employee(record.employee_id)
        if employee is None:
            raise NotFoundError("Employee", record.employee_id)
        return employee.full_name
