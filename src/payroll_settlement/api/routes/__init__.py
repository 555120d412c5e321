"""API routes."""

from payroll_settlement.api.routes.compensation import router as compensation_router
from payroll_settlement.api.routes.health import router as health_router

__all__ = ["compensation_router", "health_router"]
