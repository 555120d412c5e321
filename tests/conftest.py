"""Pytest fixtures for settlement engine tests."""

from __future__ import annotations

from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from payroll_settlement.config import Settings
from payroll_settlement.database import make_session_factory
from payroll_settlement.models import Base, Employee, Facility
from payroll_settlement.services.compensation_service import CompensationService

# In-memory SQLite stands in for PostgreSQL. The partial unique index and
# ON CONFLICT DO NOTHING behave the same on both.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs work under aiosqlite
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with make_session_factory(engine)() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url=TEST_DATABASE_URL,
        engine_version="test",
        host="127.0.0.1",
        port=8000,
        debug=False,
        store_timeout_seconds=5.0,
    )


@pytest.fixture
def service(session: AsyncSession, settings: Settings) -> CompensationService:
    return CompensationService(session, settings)


@pytest.fixture
async def facility(session: AsyncSession) -> Facility:
    """Create the main test facility."""
    facility = Facility(facility_id=uuid4(), name="Central Clinic", code="CEN")
    session.add(facility)
    await session.flush()
    return facility


@pytest.fixture
async def other_facility(session: AsyncSession) -> Facility:
    facility = Facility(facility_id=uuid4(), name="Harbour Clinic", code="HAR")
    session.add(facility)
    await session.flush()
    return facility


def make_employee(facility: Facility, code: str, first: str, last: str, **kwargs) -> Employee:
    defaults = {
        "status": "active",
        "removed": False,
        "base_compensation": Decimal("10000.00"),
        "currency": "TRY",
        "department": "Nursing",
    }
    defaults.update(kwargs)
    return Employee(
        employee_id=uuid4(),
        facility_id=facility.facility_id,
        code=code,
        first_name=first,
        last_name=last,
        email=f"{first.lower()}@example.com",
        **defaults,
    )


@pytest.fixture
async def employees(session: AsyncSession, facility: Facility) -> dict[str, Employee]:
    """Active roster of the main facility plus employees that must be skipped.

    ayse and mehmet are active; retired and removed never receive records.
    """
    roster = {
        "ayse": make_employee(
            facility,
            "E001",
            "Ayse",
            "Demir",
            iban="TR330006100519786457841326",
            bank_name="Ziraat",
        ),
        "mehmet": make_employee(
            facility,
            "E002",
            "Mehmet",
            "Kaya",
            base_compensation=Decimal("8000.00"),
            currency=None,
            department="Pharmacy",
        ),
        "retired": make_employee(facility, "E003", "Selim", "Arslan", status="retired"),
        "removed": make_employee(facility, "E004", "Deniz", "Yilmaz", removed=True),
    }
    session.add_all(roster.values())
    await session.flush()
    return roster


@pytest.fixture
async def remote_employee(session: AsyncSession, other_facility: Facility) -> Employee:
    employee = make_employee(other_facility, "H001", "Zeynep", "Celik", base_compensation=None)
    session.add(employee)
    await session.flush()
    return employee
