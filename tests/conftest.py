"""Pytest fixtures for payslip engine tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from payslip_engine.calculators.types import TaxTableConfig
from payslip_engine.database import create_session_factory, get_engine, session_scope
from payslip_engine.models import (
    Base,
    Company,
    Employee,
    HourlyRateSchedule,
    TaxTableVersion,
    Timesheet,
    TimesheetEntry,
)

# Tax table without social contributions, for hand-checkable net pay
NO_SOCIAL_RATES = {"aow_rate": "0", "wlz_rate": "0", "ww_rate": "0", "wia_rate": "0"}

NO_SOCIAL_TAX_TABLE = TaxTableConfig.from_payload(
    "test-no-social", date(2000, 1, 1), NO_SOCIAL_RATES
)


def standard_week(start: date = date(2026, 1, 5)) -> list[dict[str, Any]]:
    """40 regular hours Monday-Friday plus 5 overtime hours on Friday."""
    entries = [{"work_date": start + timedelta(days=i), "regular_hours": Decimal("8")} for i in range(5)]
    entries[-1]["overtime_hours"] = Decimal("5")
    return entries


def make_timesheet(
    entries: list[dict[str, Any]],
    status: str = "approved",
    employee_id=None,
    company_id=None,
) -> Timesheet:
    """Build an unsaved timesheet with entries."""
    return Timesheet(
        timesheet_id=uuid4(),
        employee_id=employee_id or uuid4(),
        company_id=company_id or uuid4(),
        status=status,
        entries=[TimesheetEntry(timesheet_entry_id=uuid4(), **e) for e in entries],
    )


def make_employee(**overrides: Any) -> Employee:
    """Build an unsaved employee matching the reference scenario."""
    values: dict[str, Any] = {
        "employee_id": uuid4(),
        "company_id": uuid4(),
        "first_name": "Sanne",
        "last_name": "de Vries",
        "hourly_rate": Decimal("15.00"),
        "tax_table": "white",
        "tax_credit": False,
        "pension_contribution_pct": Decimal("5"),
        "vacation_days_accrued": Decimal("0"),
        "vacation_days_taken": Decimal("0"),
    }
    values.update(overrides)
    return Employee(**values)


class Seeder:
    """Writes directory and timesheet records the engine reads."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _add(self, obj: Any) -> Any:
        async with session_scope(self.session_factory) as session:
            session.add(obj)
        return obj

    async def company(self, **overrides: Any) -> Company:
        values: dict[str, Any] = {
            "company_id": uuid4(),
            "owner_id": "owner-1",
            "name": "Bakkerij Jansen B.V.",
            "kvk_number": "12345678",
            "street": "Dorpsstraat 1",
            "zip_code": "1234 AB",
            "city": "Utrecht",
        }
        values.update(overrides)
        return await self._add(Company(**values))

    async def employee(self, company: Company, **overrides: Any) -> Employee:
        overrides.setdefault("employee_number", f"E-{uuid4().hex[:6]}")
        return await self._add(make_employee(company_id=company.company_id, **overrides))

    async def timesheet(
        self,
        employee: Employee,
        entries: list[dict[str, Any]],
        status: str = "approved",
    ) -> Timesheet:
        return await self._add(
            make_timesheet(
                entries,
                status=status,
                employee_id=employee.employee_id,
                company_id=employee.company_id,
            )
        )

    async def rate_schedule(self, company: Company, **overrides: Any) -> HourlyRateSchedule:
        values: dict[str, Any] = {
            "company_id": company.company_id,
            "effective_date": date(2025, 1, 1),
        }
        values.update(overrides)
        return await self._add(HourlyRateSchedule(**values))

    async def tax_table(
        self,
        version: str = "test-no-social",
        effective_start: date = date(2000, 1, 1),
        payload: dict[str, Any] | None = None,
        effective_end: date | None = None,
    ) -> TaxTableVersion:
        return await self._add(
            TaxTableVersion(
                version=version,
                effective_start=effective_start,
                effective_end=effective_end,
                payload_json=NO_SOCIAL_RATES if payload is None else payload,
            )
        )


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite database per test (shared by concurrent workers)."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'payslips.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def seed(session_factory: async_sessionmaker[AsyncSession]) -> Seeder:
    return Seeder(session_factory)
