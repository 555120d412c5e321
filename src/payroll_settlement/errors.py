"""Error taxonomy for the settlement engine.

Every error carries a stable ``code`` so API and batch callers can report
failures without matching on message text.
"""

from __future__ import annotations

from typing import Any


class CompensationError(Exception):
    """Base class for all settlement engine errors."""

    code = "COMPENSATION_ERROR"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "detail": str(self)}


class NotFoundError(CompensationError):
    """Referenced record, employee, or facility does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidStateError(CompensationError):
    """Raised when an operation is not permitted from the current status."""

    code = "INVALID_STATE"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = str(from_status)
        self.to_status = str(to_status)
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InvalidAmountError(CompensationError):
    """Non-finite or malformed monetary input."""

    code = "INVALID_AMOUNT"


class StoreUnavailableError(CompensationError):
    """A backing store or directory failed or timed out."""

    code = "STORE_UNAVAILABLE"

    def __init__(self, store: str, reason: str):
        self.store = store
        self.reason = reason
        super().__init__(f"{store} unavailable: {reason}")


class ConcurrentUpdateError(CompensationError):
    """Record changed between read and write (stale version)."""

    code = "CONCURRENT_UPDATE"

    def __init__(self, record_id: Any):
        self.record_id = record_id
        super().__init__(f"Compensation record {record_id} was modified concurrently")


class InvalidInputError(CompensationError, ValueError):
    """Malformed non-monetary input, or data the store rejected as invalid."""

    code = "INVALID_INPUT"
