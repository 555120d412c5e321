"""Financial transaction (ledger) store models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payroll_settlement.models.base import Base, TimestampMixin


class ExpenseCategory(Base, TimestampMixin):
    """Income/expense category in the financial store."""

    __tablename__ = "expense_category"

    category_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    entry_type: Mapped[str] = mapped_column(String, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(
            "entry_type IN ('income', 'expense')",
            name="expense_category_type_check",
        ),
    )


class LedgerEntry(Base, TimestampMixin):
    """Append-only financial transaction.

    idempotency_code is unique: a settled compensation record maps to at most
    one entry.
    """

    __tablename__ = "ledger_entry"

    ledger_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    entry_type: Mapped[str] = mapped_column(String, nullable=False)
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("expense_category.category_id", ondelete="SET NULL"),
        nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    facility_id: Mapped[UUID | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="approved")
    payment_method: Mapped[str | None] = mapped_column(String, nullable=True)
    idempotency_code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    source_type: Mapped[str] = mapped_column(String, nullable=False)
    source_id: Mapped[UUID] = mapped_column(nullable=False)

    __table_args__ = (
        CheckConstraint(
            "entry_type IN ('income', 'expense')",
            name="ledger_entry_type_check",
        ),
    )
