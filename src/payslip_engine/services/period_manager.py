"""Payroll period manager - lifecycle and batch calculation orchestration."""

from __future__ import annotations

import asyncio
import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payslip_engine.calculators.engine import PayrollEngine
from payslip_engine.calculators.rate_resolver import CompanyRateLookup
from payslip_engine.calculators.tax_calculator import TaxTableResolver
from payslip_engine.calculators.types import ZERO, TaxTableConfig
from payslip_engine.config import get_settings
from payslip_engine.database import session_scope
from payslip_engine.models import AuditEvent, Company, Employee, PayrollCalculation, PayrollPeriod
from payslip_engine.services.calculation_store import CalculationStore
from payslip_engine.services.directory import (
    EmployeeDirectory,
    SqlEmployeeDirectory,
    SqlTimesheetStore,
    TimesheetStore,
)
from payslip_engine.services.state_machine import (
    InvalidTransitionError,
    PayrollPeriodStateMachine,
    PeriodStatus,
)

if TYPE_CHECKING:
    from payslip_engine.payslips.service import PayslipService

logger = logging.getLogger(__name__)

PERIOD_TYPES = ("monthly", "weekly", "four_weekly")


class PeriodNotFoundError(Exception):
    """Raised when a payroll period does not exist."""

    def __init__(self, payroll_period_id: UUID):
        self.payroll_period_id = payroll_period_id
        super().__init__(f"Payroll period {payroll_period_id} not found")


class InvalidPeriodError(Exception):
    """Raised when a period configuration is invalid."""


@dataclass(frozen=True)
class PeriodConfig:
    """Operator input for a new payroll period."""

    company_id: UUID
    start_date: date
    end_date: date
    payment_date: date
    period_type: str = "monthly"

    @classmethod
    def monthly(
        cls, company_id: UUID, year: int, month: int, payment_day: int = 25
    ) -> PeriodConfig:
        """Calendar month, paid on payment_day of the following month.

        Raises:
            InvalidPeriodError: If the month or its payment date is not a real date
        """
        pay_year, pay_month = (year + 1, 1) if month == 12 else (year, month + 1)
        try:
            last_day = calendar.monthrange(year, month)[1]
            return cls(
                company_id=company_id,
                start_date=date(year, month, 1),
                end_date=date(year, month, last_day),
                payment_date=date(pay_year, pay_month, payment_day),
                period_type="monthly",
            )
        except ValueError as e:
            raise InvalidPeriodError(
                f"No monthly period for {year}-{month:02d} paid on day {payment_day}: {e}"
            ) from e

    def validate(self) -> None:
        if self.period_type not in PERIOD_TYPES:
            raise InvalidPeriodError(f"Unknown period type '{self.period_type}'")
        if not self.start_date < self.end_date:
            raise InvalidPeriodError(
                f"Period start {self.start_date} must be before end {self.end_date}"
            )
        if not self.end_date < self.payment_date:
            raise InvalidPeriodError(
                f"Payment date {self.payment_date} must be after period end {self.end_date}"
            )


@dataclass
class EmployeeFailure:
    employee_id: UUID
    error: str


@dataclass
class PeriodSummary:
    """Result of one run_calculation call."""

    payroll_period_id: UUID
    status: str
    employee_count: int = 0
    total_gross: Decimal = ZERO
    total_net: Decimal = ZERO
    total_tax: Decimal = ZERO
    calculated: list[UUID] = field(default_factory=list)  # employee ids
    skipped: list[UUID] = field(default_factory=list)  # no approved hours
    failed: list[EmployeeFailure] = field(default_factory=list)
    payslips_generated: int = 0
    payslip_failures: list[UUID] = field(default_factory=list)  # calculation ids

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)


@dataclass
class _EmployeeOutcome:
    employee_id: UUID
    calculation_id: UUID | None = None
    error: str | None = None
    # period left draft/calculated while the run was in flight
    blocked_by: str | None = None


class PayrollPeriodManager:
    """Service for payroll period lifecycle and batch calculation.

    Operations:
    - create_payroll_period: validate and store a draft period
    - run_calculation: fan out the per-employee pipeline, then aggregate
    - approve_period / mark_paid: status transitions, no recomputation
    - supersede_period: retire a period and open a draft replacement

    Each worker task owns one employee and opens its own session, so the
    (employee, period) key is only ever written by one task per run.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        directory: EmployeeDirectory | None = None,
        timesheets: TimesheetStore | None = None,
        payslip_service: PayslipService | None = None,
        max_workers: int | None = None,
    ):
        self.session_factory = session_factory
        self.directory = directory or SqlEmployeeDirectory(session_factory)
        self.timesheets = timesheets or SqlTimesheetStore(session_factory)
        self.payslip_service = payslip_service
        self.max_workers = max_workers or get_settings().max_workers

    # === Queries ===

    async def get_period(self, payroll_period_id: UUID) -> PayrollPeriod:
        async with self.session_factory() as session:
            period = await session.get(PayrollPeriod, payroll_period_id)
        if period is None:
            raise PeriodNotFoundError(payroll_period_id)
        return period

    async def list_periods(self, company_id: UUID) -> list[PayrollPeriod]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PayrollPeriod)
                .where(PayrollPeriod.company_id == company_id)
                .order_by(PayrollPeriod.start_date.desc(), PayrollPeriod.created_at.desc())
            )
            return list(result.scalars().all())

    async def get_payroll_calculations(
        self,
        payroll_period_id: UUID | None = None,
        employee_id: UUID | None = None,
    ) -> list[PayrollCalculation]:
        """Calculations of a period and/or an employee (at least one required)."""
        if payroll_period_id is None and employee_id is None:
            raise ValueError("payroll_period_id or employee_id is required")
        async with self.session_factory() as session:
            return await CalculationStore(session).list_calculations(
                payroll_period_id=payroll_period_id, employee_id=employee_id
            )

    # === Lifecycle ===

    async def create_payroll_period(
        self, config: PeriodConfig, actor_id: str | None = None
    ) -> UUID:
        """Validate and store a new draft period.

        Raises:
            InvalidPeriodError: If dates or period type are invalid
        """
        config.validate()
        async with session_scope(self.session_factory) as session:
            period = PayrollPeriod(
                company_id=config.company_id,
                period_type=config.period_type,
                start_date=config.start_date,
                end_date=config.end_date,
                payment_date=config.payment_date,
                status=PeriodStatus.DRAFT.value,
                created_by=actor_id,
            )
            session.add(period)
            await session.flush()
            self._record_audit(
                session,
                period.payroll_period_id,
                "created",
                actor_id,
                {"start_date": str(config.start_date), "end_date": str(config.end_date)},
            )
            period_id = period.payroll_period_id

        logger.info("Created payroll period %s for company %s", period_id, config.company_id)
        return period_id

    async def run_calculation(
        self,
        payroll_period_id: UUID,
        actor_id: str | None = None,
        generate_payslips: bool = True,
    ) -> PeriodSummary:
        """Calculate every employee of the period's company.

        Re-running is idempotent: calculations are upserted per (employee,
        period) and totals are re-aggregated from the stored rows.

        Raises:
            PeriodNotFoundError: If the period does not exist
            InvalidTransitionError: If the period is approved, paid or superseded
        """
        period = await self.get_period(payroll_period_id)
        if not PayrollPeriodStateMachine.can_calculate(period.status):
            raise InvalidTransitionError(
                period.status,
                PeriodStatus.CALCULATED.value,
                "calculation is only allowed in draft or calculated status",
            )

        company = await self.directory.get_company(period.company_id)
        employees = await self.directory.get_employees(period.company_id)
        async with self.session_factory() as session:
            tax_config = await TaxTableResolver(session).resolve(period.end_date)
        engine = PayrollEngine(tax_config=tax_config)

        logger.info(
            "Calculating period %s (%s to %s) for %d employees with tax table %s",
            payroll_period_id,
            period.start_date,
            period.end_date,
            len(employees),
            tax_config.version,
        )

        semaphore = asyncio.Semaphore(self.max_workers)
        outcomes = await asyncio.gather(
            *(
                self._calculate_employee(
                    semaphore, engine, period, company, employee, actor_id
                )
                for employee in employees
            )
        )

        blocked = next((o.blocked_by for o in outcomes if o.blocked_by is not None), None)
        if blocked is not None:
            raise InvalidTransitionError(
                blocked,
                PeriodStatus.CALCULATED,
                "period status changed while the calculation was running",
            )

        # Join point: every upsert has completed
        summary = await self._finalize_period(payroll_period_id, outcomes, tax_config, actor_id)

        if generate_payslips and self.payslip_service is not None:
            await self._generate_payslips(summary, actor_id)

        logger.info(
            "Period %s calculated: %d employees, gross %s, %d skipped, %d failed",
            payroll_period_id,
            summary.employee_count,
            summary.total_gross,
            len(summary.skipped),
            len(summary.failed),
        )
        return summary

    async def approve_period(
        self, payroll_period_id: UUID, actor_id: str | None = None
    ) -> PayrollPeriod:
        """calculated → approved; calculations are approved as stored."""
        return await self._transition(
            payroll_period_id, PeriodStatus.APPROVED, actor_id, calculation_status="approved"
        )

    async def mark_paid(
        self, payroll_period_id: UUID, actor_id: str | None = None
    ) -> PayrollPeriod:
        """approved → paid."""
        return await self._transition(
            payroll_period_id, PeriodStatus.PAID, actor_id, calculation_status="paid"
        )

    async def supersede_period(
        self, payroll_period_id: UUID, actor_id: str | None = None
    ) -> UUID:
        """Retire a period and open a draft replacement for the same window.

        The superseded period and its calculations are kept for audit.
        Returns the new period id.
        """
        async with session_scope(self.session_factory) as session:
            period = await self._load_for_update(session, payroll_period_id)
            self._apply_transition(session, period, PeriodStatus.SUPERSEDED, actor_id)

            replacement = PayrollPeriod(
                company_id=period.company_id,
                period_type=period.period_type,
                start_date=period.start_date,
                end_date=period.end_date,
                payment_date=period.payment_date,
                status=PeriodStatus.DRAFT.value,
                supersedes_period_id=period.payroll_period_id,
                created_by=actor_id,
            )
            session.add(replacement)
            await session.flush()
            self._record_audit(
                session,
                replacement.payroll_period_id,
                "created",
                actor_id,
                {"supersedes_period_id": str(period.payroll_period_id)},
            )
            new_id = replacement.payroll_period_id

        logger.info("Period %s superseded by %s", payroll_period_id, new_id)
        return new_id

    # === Internals ===

    async def _calculate_employee(
        self,
        semaphore: asyncio.Semaphore,
        engine: PayrollEngine,
        period: PayrollPeriod,
        company: Company | None,
        employee: Employee,
        actor_id: str | None,
    ) -> _EmployeeOutcome:
        """Run one employee; failures are logged and reported, never raised."""
        employee_id = employee.employee_id
        async with semaphore:
            try:
                timesheets = await self.timesheets.get_approved_timesheets(employee_id)

                async with session_scope(self.session_factory) as session:
                    status = await self._lock_status_for_write(session, period.payroll_period_id)
                    if not PayrollPeriodStateMachine.can_calculate(status):
                        logger.warning(
                            "Period %s became %s during calculation, not writing employee %s",
                            period.payroll_period_id,
                            status,
                            employee_id,
                        )
                        return _EmployeeOutcome(employee_id, blocked_by=status)

                    schedule = await CompanyRateLookup(session).get_schedule(
                        period.company_id, period.end_date, employee.job_title
                    )
                    result = engine.calculate_employee(
                        employee,
                        company,
                        timesheets,
                        period.start_date,
                        period.end_date,
                        company_schedule=schedule,
                    )
                    store = CalculationStore(session)

                    if result is None:
                        if await store.delete_for_employee(period.payroll_period_id, employee_id):
                            logger.info(
                                "Removed stale calculation for employee %s in period %s",
                                employee_id,
                                period.payroll_period_id,
                            )
                        return _EmployeeOutcome(employee_id)

                    ytd = await store.ytd_totals(
                        employee_id, period.start_date, exclude_period_id=period.payroll_period_id
                    )
                    values = engine.to_record_values(result)
                    values["ytd_gross"] = ytd.gross + result.gross_pay
                    values["ytd_net"] = ytd.net + result.net_pay
                    values["ytd_tax"] = ytd.tax + result.taxes.income_tax

                    calculation_id = await store.upsert(
                        period.payroll_period_id, values, calculated_by=actor_id
                    )

                logger.debug(
                    "Employee %s: gross %s net %s", employee_id, result.gross_pay, result.net_pay
                )
                return _EmployeeOutcome(employee_id, calculation_id=calculation_id)

            except Exception as e:
                logger.exception(
                    "Payroll calculation failed for employee %s in period %s",
                    employee_id,
                    period.payroll_period_id,
                )
                return _EmployeeOutcome(employee_id, error=f"{type(e).__name__}: {e}")

    async def _finalize_period(
        self,
        payroll_period_id: UUID,
        outcomes: list[_EmployeeOutcome],
        tax_config: TaxTableConfig,
        actor_id: str | None,
    ) -> PeriodSummary:
        async with session_scope(self.session_factory) as session:
            period = await self._load_for_update(session, payroll_period_id)
            totals = await CalculationStore(session).aggregate_period(payroll_period_id)

            period.employee_count = totals.employee_count
            period.total_gross = totals.total_gross
            period.total_net = totals.total_net
            period.total_tax = totals.total_tax
            period.calculated_at = datetime.now(timezone.utc)

            failed = [o for o in outcomes if o.error is not None]
            self._apply_transition(
                session,
                period,
                PeriodStatus.CALCULATED,
                actor_id,
                details={
                    "employee_count": totals.employee_count,
                    "total_gross": str(totals.total_gross),
                    "failed": [str(o.employee_id) for o in failed],
                    "tax_table_version": tax_config.version,
                },
            )
            status = period.status

        return PeriodSummary(
            payroll_period_id=payroll_period_id,
            status=status,
            employee_count=totals.employee_count,
            total_gross=totals.total_gross,
            total_net=totals.total_net,
            total_tax=totals.total_tax,
            calculated=[o.employee_id for o in outcomes if o.calculation_id is not None],
            skipped=[o.employee_id for o in outcomes if o.calculation_id is None and o.error is None],
            failed=[EmployeeFailure(o.employee_id, o.error) for o in failed],
        )

    async def _generate_payslips(self, summary: PeriodSummary, actor_id: str | None) -> None:
        async with self.session_factory() as session:
            calculations = await CalculationStore(session).list_calculations(
                payroll_period_id=summary.payroll_period_id
            )

        semaphore = asyncio.Semaphore(self.max_workers)

        async def generate(calculation_id: UUID) -> bool:
            async with semaphore:
                try:
                    payslip = await self.payslip_service.generate_payslip(calculation_id, actor_id)
                except Exception:
                    logger.exception("Payslip generation failed for calculation %s", calculation_id)
                    return False
                return payslip.has_document

        results = await asyncio.gather(
            *(generate(c.payroll_calculation_id) for c in calculations)
        )
        for calculation, ok in zip(calculations, results):
            if ok:
                summary.payslips_generated += 1
            else:
                summary.payslip_failures.append(calculation.payroll_calculation_id)

    async def _transition(
        self,
        payroll_period_id: UUID,
        to_status: PeriodStatus,
        actor_id: str | None,
        calculation_status: str | None = None,
    ) -> PayrollPeriod:
        async with session_scope(self.session_factory) as session:
            period = await self._load_for_update(session, payroll_period_id)
            self._apply_transition(session, period, to_status, actor_id)
            if calculation_status is not None:
                await CalculationStore(session).set_status_for_period(
                    payroll_period_id, calculation_status
                )

        logger.info("Period %s is now %s", payroll_period_id, to_status.value)
        return await self.get_period(payroll_period_id)

    @staticmethod
    async def _lock_status_for_write(session: AsyncSession, payroll_period_id: UUID) -> str:
        """Current period status, share-locked until the worker commits.

        Workers hold FOR SHARE together; a transition's FOR UPDATE waits for them.
        """
        result = await session.execute(
            select(PayrollPeriod.status)
            .where(PayrollPeriod.payroll_period_id == payroll_period_id)
            .with_for_update(read=True)
        )
        status = result.scalar_one_or_none()
        if status is None:
            raise PeriodNotFoundError(payroll_period_id)
        return status

    async def _load_for_update(
        self, session: AsyncSession, payroll_period_id: UUID
    ) -> PayrollPeriod:
        result = await session.execute(
            select(PayrollPeriod)
            .where(PayrollPeriod.payroll_period_id == payroll_period_id)
            .with_for_update()
        )
        period = result.scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(payroll_period_id)
        return period

    def _apply_transition(
        self,
        session: AsyncSession,
        period: PayrollPeriod,
        to_status: PeriodStatus,
        actor_id: str | None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Validate and apply a status change with its side effects and audit."""
        from_status = period.status
        PayrollPeriodStateMachine.validate_transition(from_status, to_status)

        now = datetime.now(timezone.utc)
        if to_status == PeriodStatus.APPROVED:
            period.approved_at = now
            period.approved_by = actor_id
        elif to_status == PeriodStatus.PAID:
            period.paid_at = now

        period.status = to_status.value
        self._record_audit(
            session,
            period.payroll_period_id,
            f"status_change:{from_status}:{to_status.value}",
            actor_id,
            details,
        )

    @staticmethod
    def _record_audit(
        session: AsyncSession,
        payroll_period_id: UUID,
        action: str,
        actor_id: str | None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record an audit event for a payroll period action."""
        session.add(
            AuditEvent(
                actor_id=actor_id,
                entity_type="payroll_period",
                entity_id=payroll_period_id,
                action=action,
                details_json=details,
            )
        )
