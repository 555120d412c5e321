"""Structured results for batch operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import UUID

from payroll_settlement.errors import CompensationError

if TYPE_CHECKING:
    from payroll_settlement.models import CompensationRecord


@dataclass
class ItemOutcome:
    """Outcome for one input id: either a record or a typed error."""

    record_id: UUID
    record: CompensationRecord | None = None
    error: CompensationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BulkResult:
    """One outcome per distinct input id, in input order."""

    outcomes: list[ItemOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[CompensationRecord]:
        return [o.record for o in self.outcomes if o.ok and o.record is not None]

    @property
    def failed(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def outcome_for(self, record_id: UUID) -> ItemOutcome | None:
        for outcome in self.outcomes:
            if outcome.record_id == record_id:
                return outcome
        return None


@dataclass
class GenerationFailure:
    employee_id: UUID
    error: CompensationError


@dataclass
class GenerationResult:
    """Result of generating drafts for one period and scope.

    skipped holds employees that already had a non-cancelled record.
    """

    period: str
    created: list[CompensationRecord] = field(default_factory=list)
    skipped: list[UUID] = field(default_factory=list)
    failures: list[GenerationFailure] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return not self.failures

    def summary(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "created": len(self.created),
            "skipped": len(self.skipped),
            "failed": len(self.failures),
        }
