"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_settlement.config import get_settings
from payroll_settlement.database import init_db
from payroll_settlement.services.compensation_service import CompensationService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency; commits when the request succeeds."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_actor_id(
    x_actor_id: Annotated[str | None, Header()] = None
) -> UUID | None:
    """Extract the acting user from the optional X-Actor-ID header."""
    if not x_actor_id:
        return None
    try:
        return UUID(x_actor_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Actor-ID format",
        )


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
ActorId = Annotated[UUID | None, Depends(get_actor_id)]


async def get_compensation_service(db: DbSession) -> CompensationService:
    return CompensationService(db, get_settings())


Compensation = Annotated[CompensationService, Depends(get_compensation_service)]
