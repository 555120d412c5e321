"""Personnel directory and facility registry models.

These tables are owned by the surrounding console; the settlement engine
only reads them.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_settlement.models.base import Base, TimestampMixin


class Facility(Base, TimestampMixin):
    """Facility (branch) that scopes employees and records."""

    __tablename__ = "facility"

    facility_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)


class Employee(Base, TimestampMixin):
    """Employee as published by the personnel directory."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    facility_id: Mapped[UUID] = mapped_column(
        ForeignKey("facility.facility_id", ondelete="RESTRICT"),
        nullable=False,
    )
    code: Mapped[str | None] = mapped_column(String, nullable=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    removed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Compensation defaults copied onto generated drafts
    base_compensation: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    iban: Mapped[str | None] = mapped_column(String, nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("facility_id", "code", name="employee_facility_code_unique"),
        CheckConstraint(
            "status IN ('active', 'inactive', 'retired')",
            name="employee_status_check",
        ),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
