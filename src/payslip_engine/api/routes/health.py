"""Health and readiness endpoints.

/health reports each component the engine depends on; /ready answers 503
until the database is reachable and payslip documents can be written.
"""

import logging
from datetime import date, datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from payslip_engine.api.dependencies import AppSettings, DbSession, get_document_storage
from payslip_engine.calculators.tax_calculator import TaxTableResolver
from payslip_engine.payslips import DocumentStorage, DocumentStorageError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

Storage = Annotated[DocumentStorage, Depends(get_document_storage)]


class HealthResponse(BaseModel):
    """Component health of the payslip engine."""

    status: str
    timestamp: datetime
    database: str
    document_storage: str
    engine_version: str
    tax_table_version: str | None = None


async def _check(db, storage: DocumentStorage, settings) -> HealthResponse:
    tax_table_version = None
    try:
        # Also proves the schema is in place, not just the connection
        tax_table_version = (await TaxTableResolver(db).resolve(date.today())).version
        db_status = "healthy"
    except (SQLAlchemyError, OSError):
        logger.warning("Database health check failed", exc_info=True)
        db_status = "unhealthy"

    try:
        storage.check_writable()
        storage_status = "healthy"
    except DocumentStorageError:
        logger.warning("Document storage is not writable", exc_info=True)
        storage_status = "unhealthy"

    healthy = db_status == storage_status == "healthy"
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        document_storage=storage_status,
        engine_version=settings.engine_version,
        tax_table_version=tax_table_version,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession, storage: Storage, settings: AppSettings) -> HealthResponse:
    """Report database, document storage and the tax table in effect today."""
    return await _check(db, storage, settings)


@router.get("/ready", response_model=HealthResponse)
async def readiness_check(
    response: Response, db: DbSession, storage: Storage, settings: AppSettings
) -> HealthResponse:
    """200 when calculations and payslips can be served, else 503."""
    health = await _check(db, storage, settings)
    if health.status != "healthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return health
