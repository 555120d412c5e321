"""Tests for the store-call guard."""

import asyncio

import pytest
from sqlalchemy.exc import DataError, IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from payroll_settlement.database import store_call
from payroll_settlement.errors import (
    ConcurrentUpdateError,
    InvalidInputError,
    StoreUnavailableError,
)


async def raising(exc):
    raise exc


class TestStoreCall:
    async def test_passes_result_through(self):
        async def value():
            return 42

        assert await store_call(value(), "record store", timeout=1) == 42

    async def test_timeout(self):
        with pytest.raises(StoreUnavailableError) as exc_info:
            await store_call(asyncio.sleep(1), "ledger store", timeout=0.01)
        assert exc_info.value.store == "ledger store"
        assert exc_info.value.code == "STORE_UNAVAILABLE"

    async def test_driver_error(self):
        error = OperationalError("SELECT 1", {}, Exception("connection reset"))
        with pytest.raises(StoreUnavailableError):
            await store_call(raising(error), "employee directory")

    async def test_integrity_error_untouched(self):
        error = IntegrityError("INSERT", {}, Exception("unique violation"))
        with pytest.raises(IntegrityError):
            await store_call(raising(error), "record store")

    async def test_stale_data(self):
        with pytest.raises(ConcurrentUpdateError) as exc_info:
            await store_call(raising(StaleDataError("0 rows")), "record store", record_id="r1")
        assert exc_info.value.record_id == "r1"

    async def test_data_error_is_invalid_input(self):
        error = DataError("INSERT", {}, Exception("numeric field overflow"))
        with pytest.raises(InvalidInputError) as exc_info:
            await store_call(raising(error), "record store")
        assert exc_info.value.code == "INVALID_INPUT"
        assert "numeric field overflow" in str(exc_info.value)
