"""Read-only adapters for the employee directory and timesheet store.

Company, employee and timesheet records are owned by other services; the
payroll engine only reads them through these protocols.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from payslip_engine.models import Company, Employee, Timesheet


class EmployeeDirectory(Protocol):
    """Protocol for the employee/company directory."""

    async def get_employees(self, company_id: UUID) -> list[Employee]:
        """All employees of a company."""
        ...

    async def get_employee(self, employee_id: UUID) -> Employee | None:
        ...

    async def get_company(self, company_id: UUID) -> Company | None:
        ...


class TimesheetStore(Protocol):
    """Protocol for the approved timesheet source."""

    async def get_approved_timesheets(self, employee_id: UUID) -> list[Timesheet]:
        """Approved timesheets of an employee, entries loaded."""
        ...


class SqlEmployeeDirectory:
    """EmployeeDirectory over the shared database.

    Each call uses its own short-lived session, so one instance can serve
    concurrent workers.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_employees(self, company_id: UUID) -> list[Employee]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Employee)
                .where(Employee.company_id == company_id)
                .order_by(Employee.last_name, Employee.first_name, Employee.employee_id)
            )
            return list(result.scalars().all())

    async def get_employee(self, employee_id: UUID) -> Employee | None:
        async with self.session_factory() as session:
            return await session.get(Employee, employee_id)

    async def get_company(self, company_id: UUID) -> Company | None:
        async with self.session_factory() as session:
            return await session.get(Company, company_id)


class SqlTimesheetStore:
    """TimesheetStore over the shared database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_approved_timesheets(self, employee_id: UUID) -> list[Timesheet]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Timesheet)
                .where(
                    Timesheet.employee_id == employee_id,
                    Timesheet.status == "approved",
                )
                .options(selectinload(Timesheet.entries))
            )
            return list(result.scalars().all())
