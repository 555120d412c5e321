"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payroll_settlement import __version__
from payroll_settlement.api.routes import compensation_router, health_router
from payroll_settlement.config import get_settings
from payroll_settlement.database import dispose_db, init_db
from payroll_settlement.errors import CompensationError

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "CONCURRENT_UPDATE": status.HTTP_409_CONFLICT,
    "INVALID_AMOUNT": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "INVALID_INPUT": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "STORE_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db()
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Payroll Settlement API",
        description="Monthly compensation records, payment settlement and ledger posting",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CompensationError)
    async def compensation_error_handler(
        request: Request, exc: CompensationError
    ) -> JSONResponse:
        """Map domain errors to HTTP statuses."""
        return JSONResponse(
            status_code=ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST),
            content=exc.to_dict(),
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc), "code": "INVALID_INPUT"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    app.include_router(health_router)
    app.include_router(compensation_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
