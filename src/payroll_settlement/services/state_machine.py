"""Compensation record state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from payroll_settlement.errors import InvalidStateError


class CompensationStatus(str, Enum):
    """Compensation record status values."""

    DRAFT = "draft"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class CompensationStateMachine:
    """State machine for compensation record status transitions.

    Allowed transitions:
    - draft → approved
    - draft → paid
    - approved → paid
    - draft → cancelled
    - approved → cancelled

    paid and cancelled are terminal.
    """

    VALID_TRANSITIONS: dict[CompensationStatus, frozenset[CompensationStatus]] = {
        CompensationStatus.DRAFT: frozenset(
            {CompensationStatus.APPROVED, CompensationStatus.PAID, CompensationStatus.CANCELLED}
        ),
        CompensationStatus.APPROVED: frozenset(
            {CompensationStatus.PAID, CompensationStatus.CANCELLED}
        ),
        CompensationStatus.PAID: frozenset(),
        CompensationStatus.CANCELLED: frozenset(),
    }

    # Statuses where base amount and line items may be edited
    AMOUNTS_MUTABLE = frozenset({CompensationStatus.DRAFT, CompensationStatus.APPROVED})

    # Statuses that block regeneration for the same employee and period
    OCCUPIES_PERIOD = frozenset(
        {CompensationStatus.DRAFT, CompensationStatus.APPROVED, CompensationStatus.PAID}
    )

    @staticmethod
    def coerce(status: str | CompensationStatus) -> CompensationStatus:
        """Convert a stored status string into the enum, rejecting unknown values."""
        try:
            return CompensationStatus(status)
        except ValueError:
            raise InvalidStateError(status, status, "unknown status") from None

    @classmethod
    def can_transition(
        cls, from_status: str | CompensationStatus, to_status: str | CompensationStatus
    ) -> bool:
        """Check if a transition is valid."""
        try:
            source = CompensationStatus(from_status)
            target = CompensationStatus(to_status)
        except ValueError:
            return False
        return target in cls.VALID_TRANSITIONS[source]

    @classmethod
    def validate_transition(
        cls, from_status: str | CompensationStatus, to_status: str | CompensationStatus
    ) -> None:
        """Validate a transition, raising InvalidStateError if invalid."""
        if not cls.can_transition(from_status, to_status):
            reason = None
            if cls.is_terminal(from_status):
                reason = f"'{from_status}' is terminal"
            raise InvalidStateError(from_status, to_status, reason)

    @classmethod
    def can_modify_amounts(cls, status: str | CompensationStatus) -> bool:
        """Check if base amount and line items can be edited in this status."""
        return status in cls.AMOUNTS_MUTABLE

    @classmethod
    def is_terminal(cls, status: str | CompensationStatus) -> bool:
        try:
            return not cls.VALID_TRANSITIONS[CompensationStatus(status)]
        except ValueError:
            return False

    @classmethod
    def get_next_statuses(cls, current_status: str | CompensationStatus) -> list[CompensationStatus]:
        """Get list of valid next statuses from current status."""
        return sorted(cls.VALID_TRANSITIONS[cls.coerce(current_status)], key=lambda s: s.value)
