"""SQLAlchemy ledger store: append-only expense entries.

Duplicate protection lives in the database: ``ledger_entry.idempotency_code``
is unique and inserts use ON CONFLICT DO NOTHING, so concurrent posters for
the same record cannot both create an entry.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_settlement.database import store_call
from payroll_settlement.models import ExpenseCategory, LedgerEntry
from payroll_settlement.services.ports import ExpenseEntry


def _conflict_insert(session: AsyncSession, model: type) -> Any:
    """Dialect-specific INSERT supporting ON CONFLICT DO NOTHING."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Ledger store does not support dialect '{dialect}'")
    return insert(model)


class SqlLedgerStore:
    """Ledger store backed by the ``ledger_entry`` table."""

    STORE_NAME = "ledger store"

    def __init__(self, session: AsyncSession, timeout: float | None = None):
        self.session = session
        self.timeout = timeout

    async def _call(self, awaitable: Any) -> Any:
        return await store_call(awaitable, self.STORE_NAME, self.timeout)

    async def find_by_idempotency_code(self, code: str) -> LedgerEntry | None:
        result = await self._call(
            self.session.execute(select(LedgerEntry).where(LedgerEntry.idempotency_code == code))
        )
        return result.scalar_one_or_none()

    async def create_expense_entry(self, entry: ExpenseEntry) -> LedgerEntry | None:
        stmt = (
            _conflict_insert(self.session, LedgerEntry)
            .values(
                ledger_entry_id=uuid4(),
                entry_type="expense",
                category_id=entry.category_id,
                amount=entry.amount,
                currency=entry.currency,
                entry_date=entry.entry_date,
                title=entry.title,
                description=entry.description,
                facility_id=entry.facility_id,
                status=entry.status,
                payment_method=entry.payment_method,
                idempotency_code=entry.idempotency_code,
                source_type=entry.source_type,
                source_id=entry.source_id,
            )
            .on_conflict_do_nothing(index_elements=["idempotency_code"])
            .returning(LedgerEntry.ledger_entry_id)
        )
        result = await self._call(self.session.execute(stmt))
        entry_id = result.scalar_one_or_none()
        if entry_id is None:
            return None
        return await self._call(self.session.get(LedgerEntry, entry_id))

    async def get_or_create_category(self, name: str, entry_type: str) -> UUID:
        """Return the system category id, creating it on first use."""
        existing = await self._call(
            self.session.execute(
                select(ExpenseCategory.category_id).where(ExpenseCategory.name == name)
            )
        )
        category_id = existing.scalar_one_or_none()
        if category_id is not None:
            return category_id

        stmt = (
            _conflict_insert(self.session, ExpenseCategory)
            .values(category_id=uuid4(), name=name, entry_type=entry_type, is_system=True)
            .on_conflict_do_nothing(index_elements=["name"])
            .returning(ExpenseCategory.category_id)
        )
        result = await self._call(self.session.execute(stmt))
        category_id = result.scalar_one_or_none()
        if category_id is not None:
            return category_id

        # Lost a creation race; the winner's row is now visible
        existing = await self._call(
            self.session.execute(
                select(ExpenseCategory.category_id).where(ExpenseCategory.name == name)
            )
        )
        return existing.scalar_one()
