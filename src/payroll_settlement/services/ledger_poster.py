"""Idempotent settlement posting to the ledger store."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID

from payroll_settlement.errors import StoreUnavailableError
from payroll_settlement.services.ports import EmployeeDirectory, ExpenseEntry, LedgerStore

if TYPE_CHECKING:
    from payroll_settlement.config import Settings
    from payroll_settlement.models import CompensationRecord

logger = logging.getLogger(__name__)

SOURCE_TYPE = "compensation_record"


def idempotency_code(record_id: UUID | str, prefix: str = "PAY") -> str:
    """Derive the posting idempotency code for a record.

    SHA-256 over the full record id truncated to 128 bits, so distinct ids do
    not collide the way an id prefix can.
    """
    digest = hashlib.sha256(str(record_id).encode()).hexdigest()[:32]
    return f"{prefix}-{digest.upper()}"


@dataclass(frozen=True)
class PostResult:
    """Result of a settlement posting.

    ``is_new=False`` means an entry with the same idempotency code already
    existed and nothing was written. That is success, not an error.
    """

    entry_id: UUID
    is_new: bool
    idempotency_code: str

    @property
    def was_duplicate(self) -> bool:
        return not self.is_new


class LedgerPoster:
    """Posts one expense entry per paid compensation record."""

    def __init__(
        self,
        ledger_store: LedgerStore,
        directory: EmployeeDirectory,
        settings: Settings,
    ):
        self.ledger_store = ledger_store
        self.directory = directory
        self.settings = settings

    def code_for(self, record_id: UUID) -> str:
        return idempotency_code(record_id, self.settings.idempotency_code_prefix)

    async def post_if_absent(self, record: CompensationRecord) -> PostResult:
        """Create the record's ledger entry unless one already exists.

        The pre-check avoids needless category lookups on retries; the unique
        idempotency code makes the insert itself safe under concurrency.
        """
        code = self.code_for(record.record_id)

        existing = await self.ledger_store.find_by_idempotency_code(code)
        if existing is not None:
            logger.info(
                "Ledger entry %s already exists for compensation record %s",
                code,
                record.record_id,
            )
            return PostResult(entry_id=existing.ledger_entry_id, is_new=False, idempotency_code=code)

        employee = await self.directory.get_employee(record.employee_id)
        employee_name = employee.full_name if employee is not None else str(record.employee_id)

        category_id = await self.ledger_store.get_or_create_category(
            self.settings.ledger_category_name, "expense"
        )
        created = await self.ledger_store.create_expense_entry(
            ExpenseEntry(
                idempotency_code=code,
                amount=record.net_amount,
                currency=record.currency,
                entry_date=record.payment_date or date.today(),
                title=f"Salary payment - {employee_name}",
                description=f"{record.period} salary payment",
                category_id=category_id,
                facility_id=record.facility_id,
                source_type=SOURCE_TYPE,
                source_id=record.record_id,
            )
        )
        if created is not None:
            logger.info(
                "Posted ledger entry %s (%s %s) for compensation record %s",
                code,
                record.net_amount,
                record.currency,
                record.record_id,
            )
            return PostResult(entry_id=created.ledger_entry_id, is_new=True, idempotency_code=code)

        # Another poster inserted between our check and our insert
        existing = await self.ledger_store.find_by_idempotency_code(code)
        if existing is None:
            raise StoreUnavailableError(
                "ledger store", f"posting {code} conflicted but no entry was found"
            )
        return PostResult(entry_id=existing.ledger_entry_id, is_new=False, idempotency_code=code)
