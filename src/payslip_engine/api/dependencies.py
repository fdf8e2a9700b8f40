"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payslip_engine.config import Settings, get_settings
from payslip_engine.database import init_db
from payslip_engine.payslips import (
    DocumentStorage,
    LocalDocumentStorage,
    PayslipService,
    PdfPayslipRenderer,
)
from payslip_engine.services import PayrollPeriodManager, SqlEmployeeDirectory


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the shared session factory."""
    _, factory = init_db()
    return factory


SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
AppSettings = Annotated[Settings, Depends(get_settings)]


async def get_db_session(factory: SessionFactory) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with factory() as session:
        yield session


def get_actor_id(x_user_id: Annotated[str | None, Header()] = None) -> str | None:
    """Acting user from the X-User-ID header (recorded on audit trails)."""
    return x_user_id or None


def get_document_storage(settings: AppSettings) -> DocumentStorage:
    return LocalDocumentStorage(settings.document_root, settings.document_base_url)


def get_payslip_service(
    factory: SessionFactory,
    storage: Annotated[DocumentStorage, Depends(get_document_storage)],
) -> PayslipService:
    return PayslipService(
        session_factory=factory,
        directory=SqlEmployeeDirectory(factory),
        renderer=PdfPayslipRenderer(),
        storage=storage,
    )


def get_period_manager(
    factory: SessionFactory,
    settings: AppSettings,
    payslip_service: Annotated[PayslipService, Depends(get_payslip_service)],
) -> PayrollPeriodManager:
    return PayrollPeriodManager(
        session_factory=factory,
        payslip_service=payslip_service,
        max_workers=settings.max_workers,
    )


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
ActorId = Annotated[str | None, Depends(get_actor_id)]
PeriodManager = Annotated[PayrollPeriodManager, Depends(get_period_manager)]
Payslips = Annotated[PayslipService, Depends(get_payslip_service)]
