"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payslip_engine import __version__
from payslip_engine.api.routes import health_router, payroll_periods_router, payslips_router
from payslip_engine.config import get_settings
from payslip_engine.database import dispose_db, init_db
from payslip_engine.payslips import DocumentStorageError, PayslipNotFoundError
from payslip_engine.services import (
    CalculationNotFoundError,
    InvalidPeriodError,
    InvalidTransitionError,
    PeriodNotFoundError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db()
    logger.info("Payslip engine %s started", settings.engine_version)
    yield
    await dispose_db()


def _error(status_code: int, detail: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Payslip Engine API",
        description="Payroll calculation and payslip generation",
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

    # Exception handlers
    @app.exception_handler(PeriodNotFoundError)
    @app.exception_handler(CalculationNotFoundError)
    @app.exception_handler(PayslipNotFoundError)
    async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc), "NOT_FOUND")

    @app.exception_handler(DocumentStorageError)
    async def document_handler(request: Request, exc: DocumentStorageError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc), "DOCUMENT_UNAVAILABLE")

    @app.exception_handler(InvalidTransitionError)
    async def transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc), "INVALID_TRANSITION")

    @app.exception_handler(InvalidPeriodError)
    async def period_handler(request: Request, exc: InvalidPeriodError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc), "INVALID_PERIOD")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            "INTERNAL_ERROR",
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_periods_router, prefix="/api/v1")
    app.include_router(payslips_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
