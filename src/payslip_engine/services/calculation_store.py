"""Keyed persistence for payroll calculations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payslip_engine.calculators.types import ZERO, round_to_cents
from payslip_engine.database import dialect_insert
from payslip_engine.models import PayrollCalculation, PayrollPeriod, Payslip
from payslip_engine.services.state_machine import PayrollPeriodStateMachine

# Columns never overwritten by a recalculation
_PRESERVED_ON_CONFLICT = {
    "payroll_calculation_id",
    "employee_id",
    "payroll_period_id",
    "created_at",
}


class CalculationNotFoundError(Exception):
    """Raised when a payroll calculation does not exist."""

    def __init__(self, calculation_id: UUID):
        self.calculation_id = calculation_id
        super().__init__(f"Payroll calculation {calculation_id} not found")


@dataclass
class PeriodTotals:
    """Aggregates over all calculations stored for one period."""

    employee_count: int = 0
    total_gross: Decimal = ZERO
    total_net: Decimal = ZERO
    total_tax: Decimal = ZERO


@dataclass
class YtdTotals:
    gross: Decimal = ZERO
    net: Decimal = ZERO
    tax: Decimal = ZERO


def _as_money(value: Any) -> Decimal:
    if value is None:
        return ZERO
    return round_to_cents(Decimal(str(value)))


class CalculationStore:
    """Service for keyed payroll calculation persistence.

    Key invariants:
    1. One payroll_calculation per (employee_id, payroll_period_id), enforced
       by a unique constraint
    2. Writes are INSERT ... ON CONFLICT DO UPDATE, so concurrent or repeated
       runs replace the row in place and keep its id
    3. Period totals are always read back from the stored rows
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(
        self,
        payroll_period_id: UUID,
        values: dict[str, Any],
        calculated_by: str | None = None,
        status: str = "calculated",
    ) -> UUID:
        """Insert or replace the calculation for (employee, period).

        Returns the calculation id, which is stable across recalculations.
        """
        row = {
            **values,
            "payroll_period_id": payroll_period_id,
            "status": status,
            "calculated_at": datetime.now(timezone.utc),
            "calculated_by": calculated_by,
        }
        stmt = dialect_insert(self.session, PayrollCalculation).values(**row)
        update_values = {
            key: stmt.excluded[key] for key in row if key not in _PRESERVED_ON_CONFLICT
        }
        update_values["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            index_elements=["employee_id", "payroll_period_id"],
            set_=update_values,
        ).returning(PayrollCalculation.payroll_calculation_id)

        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def delete_for_employee(self, payroll_period_id: UUID, employee_id: UUID) -> bool:
        """Remove a stale calculation (and its payslip) for an employee.

        Returns True if a calculation was removed.
        """
        calc_ids = select(PayrollCalculation.payroll_calculation_id).where(
            PayrollCalculation.payroll_period_id == payroll_period_id,
            PayrollCalculation.employee_id == employee_id,
        )
        await self.session.execute(
            delete(Payslip).where(Payslip.payroll_calculation_id.in_(calc_ids))
        )
        result = await self.session.execute(
            delete(PayrollCalculation).where(
                PayrollCalculation.payroll_period_id == payroll_period_id,
                PayrollCalculation.employee_id == employee_id,
            )
        )
        return result.rowcount > 0

    async def get(self, calculation_id: UUID) -> PayrollCalculation:
        calculation = await self.session.get(PayrollCalculation, calculation_id)
        if calculation is None:
            raise CalculationNotFoundError(calculation_id)
        return calculation

    async def list_calculations(
        self,
        payroll_period_id: UUID | None = None,
        employee_id: UUID | None = None,
    ) -> list[PayrollCalculation]:
        """List calculations filtered by period and/or employee."""
        stmt = select(PayrollCalculation)
        if payroll_period_id is not None:
            stmt = stmt.where(PayrollCalculation.payroll_period_id == payroll_period_id)
        if employee_id is not None:
            stmt = stmt.where(PayrollCalculation.employee_id == employee_id)
        stmt = stmt.order_by(
            PayrollCalculation.period_start_date.desc(),
            PayrollCalculation.employee_id,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def aggregate_period(self, payroll_period_id: UUID) -> PeriodTotals:
        """Sum the stored calculations of a period."""
        result = await self.session.execute(
            select(
                func.count(PayrollCalculation.payroll_calculation_id),
                func.sum(PayrollCalculation.gross_pay),
                func.sum(PayrollCalculation.net_pay),
                func.sum(PayrollCalculation.income_tax),
            ).where(PayrollCalculation.payroll_period_id == payroll_period_id)
        )
        count, gross, net, tax = result.one()
        return PeriodTotals(
            employee_count=count or 0,
            total_gross=_as_money(gross),
            total_net=_as_money(net),
            total_tax=_as_money(tax),
        )

    async def ytd_totals(
        self,
        employee_id: UUID,
        before: date,
        exclude_period_id: UUID | None = None,
    ) -> YtdTotals:
        """Totals of the employee's earlier calculations in the same year.

        Only periods that are calculated, approved or paid count, so a
        superseded period and its replacement are never both included.
        """
        stmt = (
            select(
                func.sum(PayrollCalculation.gross_pay),
                func.sum(PayrollCalculation.net_pay),
                func.sum(PayrollCalculation.income_tax),
            )
            .select_from(PayrollCalculation)
            .join(
                PayrollPeriod,
                PayrollPeriod.payroll_period_id == PayrollCalculation.payroll_period_id,
            )
            .where(
                PayrollCalculation.employee_id == employee_id,
                PayrollCalculation.period_end_date >= date(before.year, 1, 1),
                PayrollCalculation.period_end_date < before,
                PayrollPeriod.status.in_(
                    [s.value for s in PayrollPeriodStateMachine.YTD_COUNTED]
                ),
            )
        )
        if exclude_period_id is not None:
            stmt = stmt.where(PayrollCalculation.payroll_period_id != exclude_period_id)

        gross, net, tax = (await self.session.execute(stmt)).one()
        return YtdTotals(gross=_as_money(gross), net=_as_money(net), tax=_as_money(tax))

    async def set_status_for_period(self, payroll_period_id: UUID, status: str) -> int:
        """Move every calculation of a period to a status. Returns row count."""
        result = await self.session.execute(
            update(PayrollCalculation)
            .where(PayrollCalculation.payroll_period_id == payroll_period_id)
            .values(status=status, updated_at=func.now())
        )
        return result.rowcount
