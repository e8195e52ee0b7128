"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payroll_workflow import __version__
from payroll_workflow.api.routes import (
    approvals_router,
    attendance_router,
    health_router,
    payroll_periods_router,
    payslips_router,
    tax_settings_router,
)
from payroll_workflow.database import dispose_db, init_db
from payroll_workflow.errors import (
    EngineError,
    EntityNotFound,
    ErrorKind,
    InvariantViolation,
    NotAuthorized,
)

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.SEQUENCING: status.HTTP_409_CONFLICT,
    ErrorKind.AGGREGATE: status.HTTP_409_CONFLICT,
}


def status_for(exc: EngineError) -> int:
    if isinstance(exc, EntityNotFound):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, NotAuthorized):
        return status.HTTP_403_FORBIDDEN
    return _STATUS_BY_KIND[exc.kind]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    init_db()
    yield
    # Shutdown
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Payroll Workflow API",
        description="Payroll computation and multi-level approvals",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
        """Report business outcomes with the entity's current state."""
        return JSONResponse(status_code=status_for(exc), content=exc.to_dict())

    @app.exception_handler(InvariantViolation)
    async def invariant_violation_handler(
        request: Request, exc: InvariantViolation
    ) -> JSONResponse:
        logger.critical("Invariant violation on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": str(exc), "code": "INVARIANT_VIOLATION"},
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

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_periods_router, prefix="/api/v1")
    app.include_router(attendance_router, prefix="/api/v1")
    app.include_router(approvals_router, prefix="/api/v1")
    app.include_router(payslips_router, prefix="/api/v1")
    app.include_router(tax_settings_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
