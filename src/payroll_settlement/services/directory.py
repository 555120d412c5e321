"""SQLAlchemy adapters for the employee directory and facility registry."""

from __future__ import annotations

from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_settlement.database import store_call
from payroll_settlement.errors import NotFoundError
from payroll_settlement.models import Employee, Facility


class SqlEmployeeDirectory:
    """Employee directory backed by the ``employee`` table.

    Active means status 'active' and not removed; retired, inactive and
    removed employees never receive generated records.
    """

    STORE_NAME = "employee directory"

    def __init__(self, session: AsyncSession, timeout: float | None = None):
        self.session = session
        self.timeout = timeout

    async def _call(self, awaitable: Any) -> Any:
        return await store_call(awaitable, self.STORE_NAME, self.timeout)

    async def list_active_employees(self, facility_id: UUID | None = None) -> list[Employee]:
        query = select(Employee).where(
            Employee.status == "active",
            Employee.removed.is_(False),
        )
        if facility_id:
            query = query.where(Employee.facility_id == facility_id)
        query = query.order_by(Employee.last_name, Employee.first_name)

        result = await self._call(self.session.execute(query))
        return list(result.scalars().all())

    async def get_employee(self, employee_id: UUID) -> Employee | None:
        return await self._call(self.session.get(Employee, employee_id))

    async def get_employees(self, employee_ids: Iterable[UUID]) -> dict[UUID, Employee]:
        ids = list(set(employee_ids))
        if not ids:
            return {}
        result = await self._call(
            self.session.execute(select(Employee).where(Employee.employee_id.in_(ids)))
        )
        return {employee.employee_id: employee for employee in result.scalars().all()}


class SqlFacilityRegistry:
    """Facility registry backed by the ``facility`` table."""

    STORE_NAME = "facility registry"

    def __init__(self, session: AsyncSession, timeout: float | None = None):
        self.session = session
        self.timeout = timeout

    async def get_facility(self, facility_id: UUID) -> Facility:
        facility = await store_call(
            self.session.get(Facility, facility_id), self.STORE_NAME, self.timeout
        )
        if facility is None:
            raise NotFoundError("Facility", facility_id)
        return facility
