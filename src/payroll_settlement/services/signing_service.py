"""Employee acknowledgement (signing) of compensation records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from payroll_settlement.errors import InvalidInputError, InvalidStateError, NotFoundError
from payroll_settlement.services.audit import AuditRecorder
from payroll_settlement.services.ports import RecordStore
from payroll_settlement.services.state_machine import CompensationStateMachine

if TYPE_CHECKING:
    from payroll_settlement.config import Settings
    from payroll_settlement.models import CompensationRecord


class SigningService:
    """Records an employee's acknowledgement of a record.

    Signing never changes status and never recomputes totals. Which statuses
    may be signed is policy (``Settings.allowed_signing_states``).
    """

    def __init__(self, session: AsyncSession, record_store: RecordStore, settings: Settings):
        self.record_store = record_store
        self.settings = settings
        self.audit = AuditRecorder(session)

    def can_sign(self, status: str) -> bool:
        return CompensationStateMachine.coerce(status) in self.settings.allowed_signing_states

    async def sign(
        self,
        record_id: UUID,
        signer_name: str,
        actor_user_id: UUID | None = None,
    ) -> CompensationRecord:
        if not signer_name or not signer_name.strip():
            raise InvalidInputError("Signer name must be a non-empty string")

        record = await self.record_store.get(record_id)
        if record is None:
            raise NotFoundError("Compensation record", record_id)

        if not self.can_sign(record.status):
            allowed = ", ".join(sorted(s.value for s in self.settings.allowed_signing_states))
            raise InvalidStateError(
                record.status,
                record.status,
                f"signing is only allowed in: {allowed or 'no status'}",
            )

        record.signed = True
        record.signed_by = signer_name.strip()
        record.signed_at = datetime.now(timezone.utc)

        self.audit.record(
            record_id,
            "signed",
            actor_user_id=actor_user_id,
            after={"signed_by": record.signed_by, "status": record.status},
        )
        return await self.record_store.save(record)
