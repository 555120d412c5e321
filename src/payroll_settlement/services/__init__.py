"""Settlement engine services."""

from payroll_settlement.services.state_machine import CompensationStateMachine, CompensationStatus

__all__ = [
    "CompensationStateMachine",
    "CompensationStatus",
]
