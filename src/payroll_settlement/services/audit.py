"""Audit trail for compensation record changes."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_settlement.models import AuditEvent

ENTITY_TYPE = "compensation_record"


class AuditRecorder:
    """Adds audit events to the session; they are flushed with the change they describe."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def record(
        self,
        record_id: UUID,
        action: str,
        actor_user_id: UUID | None = None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> AuditEvent:
        event = AuditEvent(
            actor_user_id=actor_user_id,
            entity_type=ENTITY_TYPE,
            entity_id=record_id,
            action=action,
            before_json=before,
            after_json=after,
        )
        self.session.add(event)
        return event

    def status_change(
        self,
        record_id: UUID,
        from_status: str,
        to_status: str,
        actor_user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditEvent:
        return self.record(
            record_id,
            f"status_change:{from_status}:{to_status}",
            actor_user_id=actor_user_id,
            before={"status": str(from_status)},
            after={"status": str(to_status), **(details or {})},
        )

    async def events_for(self, record_id: UUID) -> list[AuditEvent]:
        await self.session.flush()
        result = await self.session.execute(
            select(AuditEvent)
            .where(AuditEvent.entity_type == ENTITY_TYPE, AuditEvent.entity_id == record_id)
            .order_by(AuditEvent.created_at)
        )
        return list(result.scalars().all())
