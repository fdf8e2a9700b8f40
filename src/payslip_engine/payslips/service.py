"""Payslip service - record, render and store payslip documents."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payslip_engine.database import dialect_insert, session_scope
from payslip_engine.models import PayrollCalculation, PayrollPeriod, Payslip
from payslip_engine.payslips.builder import PayslipBuilder, PayslipViewModel
from payslip_engine.payslips.renderer import PayslipRenderer
from payslip_engine.payslips.storage import (
    DocumentStorage,
    DocumentStorageError,
    payslip_storage_path,
)
from payslip_engine.services.calculation_store import CalculationStore
from payslip_engine.services.directory import EmployeeDirectory

logger = logging.getLogger(__name__)


class PayslipNotFoundError(Exception):
    """Raised when a payslip does not exist."""

    def __init__(self, payslip_id: UUID):
        self.payslip_id = payslip_id
        super().__init__(f"Payslip {payslip_id} not found")


class PayslipService:
    """Service for the payslip document lifecycle.

    Two independently failing stages:
    1. The Payslip row is upserted (one per calculation) and committed
    2. The document is built, rendered, stored and its reference recorded

    A failure in stage 2 leaves the calculation untouched and the payslip
    without a document reference; calling generate_payslip again retries.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        directory: EmployeeDirectory,
        renderer: PayslipRenderer,
        storage: DocumentStorage,
        builder: PayslipBuilder | None = None,
    ):
        self.session_factory = session_factory
        self.directory = directory
        self.renderer = renderer
        self.storage = storage
        self.builder = builder or PayslipBuilder()

    async def generate_payslip(
        self, calculation_id: UUID, actor_id: str | None = None
    ) -> Payslip:
        """Create or refresh the payslip of a calculation and render it.

        Raises:
            CalculationNotFoundError: If the calculation does not exist
        """
        async with session_scope(self.session_factory) as session:
            calculation = await CalculationStore(session).get(calculation_id)
            period = await session.get(PayrollPeriod, calculation.payroll_period_id)
            payslip_id = await self._upsert_record(session, calculation, period)

        try:
            view_model = await self._build(calculation, period)
            path = payslip_storage_path(
                calculation.company_id,
                calculation.payroll_period_id,
                payslip_id,
                self.renderer.file_extension,
            )
            data = await asyncio.to_thread(self.renderer.render, view_model)
            url = await asyncio.to_thread(self.storage.store, data, path)
        except Exception as e:
            logger.exception(
                "Payslip rendering failed for calculation %s (payslip %s)",
                calculation_id,
                payslip_id,
            )
            values = {
                "pdf_url": None,
                "pdf_storage_path": None,
                "render_error": f"{type(e).__name__}: {e}",
            }
        else:
            values = {
                "pdf_url": url,
                "pdf_storage_path": path,
                "generated_at": datetime.now(timezone.utc),
                "generated_by": actor_id,
                "render_error": None,
            }

        async with session_scope(self.session_factory) as session:
            await session.execute(
                update(Payslip).where(Payslip.payslip_id == payslip_id).values(**values)
            )
            payslip = await session.get(Payslip, payslip_id, populate_existing=True)

        if payslip.render_error is None:
            logger.info("Generated payslip %s for calculation %s", payslip_id, calculation_id)
        return payslip

    async def regenerate_payslip(
        self, calculation_id: UUID, actor_id: str | None = None
    ) -> Payslip:
        """Re-render from the stored calculation, overwriting the reference."""
        return await self.generate_payslip(calculation_id, actor_id)

    async def get_payslip(self, payslip_id: UUID) -> Payslip:
        async with self.session_factory() as session:
            payslip = await session.get(Payslip, payslip_id)
        if payslip is None:
            raise PayslipNotFoundError(payslip_id)
        return payslip

    async def get_payslips(self, employee_id: UUID, year: int | None = None) -> list[Payslip]:
        """Payslips of an employee, newest period first, optionally for one year."""
        stmt = select(Payslip).where(Payslip.employee_id == employee_id)
        if year is not None:
            stmt = stmt.where(
                Payslip.period_start_date >= date(year, 1, 1),
                Payslip.period_start_date <= date(year, 12, 31),
            )
        stmt = stmt.order_by(Payslip.period_start_date.desc())

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def build_view_model(self, payslip_id: UUID) -> PayslipViewModel:
        """Rebuild the view model of a payslip from its calculation."""
        payslip = await self.get_payslip(payslip_id)
        async with self.session_factory() as session:
            calculation = await CalculationStore(session).get(payslip.payroll_calculation_id)
            period = await session.get(PayrollPeriod, calculation.payroll_period_id)
        return await self._build(calculation, period)

    async def open_document(self, payslip_id: UUID) -> tuple[Payslip, bytes]:
        """Read the stored document and stamp downloaded_at.

        Raises:
            PayslipNotFoundError: If the payslip does not exist
            DocumentStorageError: If no document is stored or it cannot be read
        """
        payslip = await self.get_payslip(payslip_id)
        if not payslip.has_document:
            raise DocumentStorageError(
                payslip.pdf_storage_path or "", payslip.render_error or "no document stored"
            )
        data = await asyncio.to_thread(self.storage.read, payslip.pdf_storage_path)

        async with session_scope(self.session_factory) as session:
            await session.execute(
                update(Payslip)
                .where(Payslip.payslip_id == payslip_id)
                .values(downloaded_at=datetime.now(timezone.utc))
            )
            payslip = await session.get(Payslip, payslip_id, populate_existing=True)
        return payslip, data

    async def _upsert_record(
        self,
        session: AsyncSession,
        calculation: PayrollCalculation,
        period: PayrollPeriod,
    ) -> UUID:
        row = {
            "employee_id": calculation.employee_id,
            "company_id": calculation.company_id,
            "payroll_period_id": calculation.payroll_period_id,
            "payroll_calculation_id": calculation.payroll_calculation_id,
            "period_start_date": calculation.period_start_date,
            "period_end_date": calculation.period_end_date,
            "payment_date": period.payment_date,
        }
        stmt = dialect_insert(session, Payslip).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=["payroll_calculation_id"],
            set_={
                "period_start_date": stmt.excluded.period_start_date,
                "period_end_date": stmt.excluded.period_end_date,
                "payment_date": stmt.excluded.payment_date,
            },
        ).returning(Payslip.payslip_id)
        result = await session.execute(stmt)
        return result.scalar_one()

    async def _build(
        self, calculation: PayrollCalculation, period: PayrollPeriod
    ) -> PayslipViewModel:
        employee = await self.directory.get_employee(calculation.employee_id)
        if employee is None:
            raise LookupError(f"Employee {calculation.employee_id} not found")
        company = await self.directory.get_company(calculation.company_id)
        if company is None:
            raise LookupError(f"Company {calculation.company_id} not found")
        return self.builder.build(calculation, employee, company, period)
