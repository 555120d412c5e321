"""Compensation record model."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from payroll_settlement.calculators.types import Derivation, LineItem, coerce_line_items
from payroll_settlement.models.base import Base, JSONType, UpdateTimestampMixin

_NOT_CANCELLED = text("status <> 'cancelled'")


class CompensationRecord(Base, UpdateTimestampMixin):
    """One employee's compensation for one pay period.

    gross_amount, total_deductions and net_amount are derived values; they are
    written only through ``apply_derivation``.
    """

    __tablename__ = "compensation_record"

    record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    facility_id: Mapped[UUID] = mapped_column(
        ForeignKey("facility.facility_id", ondelete="RESTRICT"),
        nullable=False,
    )
    period: Mapped[str] = mapped_column(String(7), nullable=False)

    # Monetary inputs
    base_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    allowances: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    deductions: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    bonuses: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    # Derived outputs
    gross_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Bank routing (informational only)
    iban: Mapped[str | None] = mapped_column(String, nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String, nullable=True)

    # Acknowledgement, independent of status
    signed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    signed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Optimistic concurrency token
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'approved', 'paid', 'cancelled')",
            name="compensation_record_status_check",
        ),
        CheckConstraint(
            "status <> 'paid' OR payment_date IS NOT NULL",
            name="compensation_record_paid_date_check",
        ),
        Index(
            "compensation_record_active_period_unique",
            "employee_id",
            "facility_id",
            "period",
            unique=True,
            postgresql_where=_NOT_CANCELLED,
            sqlite_where=_NOT_CANCELLED,
        ),
        Index("compensation_record_period_idx", "period"),
        Index("compensation_record_facility_idx", "facility_id"),
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def allowance_items(self) -> tuple[LineItem, ...]:
        return coerce_line_items(self.allowances)

    @property
    def deduction_items(self) -> tuple[LineItem, ...]:
        return coerce_line_items(self.deductions)

    @property
    def bonus_items(self) -> tuple[LineItem, ...]:
        return coerce_line_items(self.bonuses)

    @staticmethod
    def serialize_items(items: Iterable[LineItem]) -> list[dict[str, str]]:
        return [item.to_dict() for item in items]

    def apply_derivation(self, derivation: Derivation) -> None:
        """Write derived totals computed by the calculation engine."""
        self.gross_amount = derivation.gross
        self.total_deductions = derivation.total_deductions
        self.net_amount = derivation.net
