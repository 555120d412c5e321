"""Database connection, session management and store-call guarding."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncGenerator, Awaitable, TypeVar

from sqlalchemy.exc import DataError, DBAPIError, DisconnectionError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm.exc import StaleDataError

from payroll_settlement.config import get_settings
from payroll_settlement.errors import (
    ConcurrentUpdateError,
    InvalidInputError,
    StoreUnavailableError,
)
from payroll_settlement.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

T = TypeVar("T")


def get_engine() -> AsyncEngine:
    """Create async database engine."""
    settings = get_settings()
    return create_async_engine(
        settings.database_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


# Global engine and session factory
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def init_db() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Initialize database engine and session factory."""
    global _engine, _session_factory
    if _engine is None:
        _engine = get_engine()
        _session_factory = make_session_factory(_engine)
    return _engine, _session_factory


async def create_schema(engine: AsyncEngine | None = None) -> None:
    """Create all tables (development and tests; production uses migrations)."""
    if engine is None:
        engine, _ = init_db()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session that commits on success and rolls back on error."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def store_call(
    awaitable: Awaitable[T],
    store: str,
    timeout: float | None = None,
    record_id: Any = None,
) -> T:
    """Await a store operation, translating failures into the error taxonomy.

    - timeout or driver/connection failure -> StoreUnavailableError
    - data the store rejects (overflow, bad encoding) -> InvalidInputError
    - stale version on flush -> ConcurrentUpdateError
    - IntegrityError propagates unchanged (callers branch on it)
    """
    try:
        if timeout:
            return await asyncio.wait_for(awaitable, timeout)
        return await awaitable
    except asyncio.TimeoutError:
        raise StoreUnavailableError(store, f"timed out after {timeout}s") from None
    except IntegrityError:
        raise
    except StaleDataError as exc:
        raise ConcurrentUpdateError(record_id) from exc
    except DataError as exc:
        raise InvalidInputError(f"{store} rejected the data: {exc.orig}") from exc
    except (DBAPIError, DisconnectionError, PoolTimeoutError) as exc:
        raise StoreUnavailableError(store, str(exc)) from exc
