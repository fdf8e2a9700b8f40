"""Integration tests for the payroll period lifecycle on SQLite."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select, update

from payslip_engine.models import AuditEvent, Timesheet
from payslip_engine.services import (
    InvalidPeriodError,
    InvalidTransitionError,
    PayrollPeriodManager,
    PeriodConfig,
    PeriodNotFoundError,
    SqlTimesheetStore,
)

from conftest import standard_week

pytestmark = pytest.mark.asyncio


class FlakyTimesheetStore:
    """Timesheet store that fails for chosen employees."""

    def __init__(self, inner, failing_ids):
        self.inner = inner
        self.failing_ids = set(failing_ids)

    async def get_approved_timesheets(self, employee_id):
        if employee_id in self.failing_ids:
            raise RuntimeError("timesheet service unavailable")
        return await self.inner.get_approved_timesheets(employee_id)


class HookedTimesheetStore:
    """Timesheet store that runs a callback before the first lookup."""

    def __init__(self, inner, before_first_call):
        self.inner = inner
        self.before_first_call = before_first_call

    async def get_approved_timesheets(self, employee_id):
        if self.before_first_call is not None:
            callback, self.before_first_call = self.before_first_call, None
            await callback()
        return await self.inner.get_approved_timesheets(employee_id)


@pytest.fixture
def manager(session_factory) -> PayrollPeriodManager:
    return PayrollPeriodManager(session_factory, max_workers=4)


@pytest_asyncio.fixture
async def company(seed):
    await seed.tax_table()
    return await seed.company()


async def january(manager, company) -> object:
    return await manager.create_payroll_period(
        PeriodConfig.monthly(company.company_id, 2026, 1), actor_id="admin"
    )


class TestCreatePeriod:
    async def test_monthly_period(self, manager, company):
        period_id = await january(manager, company)
        period = await manager.get_period(period_id)

        assert period.status == "draft"
        assert period.start_date == date(2026, 1, 1)
        assert period.end_date == date(2026, 1, 31)
        assert period.payment_date == date(2026, 2, 25)
        assert period.created_by == "admin"
        assert period.employee_count == 0

    async def test_december_pays_in_january(self):
        config = PeriodConfig.monthly(uuid4(), 2025, 12)
        assert config.payment_date == date(2026, 1, 25)

    @pytest.mark.parametrize(
        "year, month, payment_day",
        [(9999, 12, 25), (2026, 1, 30), (2026, 13, 25)],
    )
    async def test_impossible_monthly_window(self, year, month, payment_day):
        with pytest.raises(InvalidPeriodError):
            PeriodConfig.monthly(uuid4(), year, month, payment_day=payment_day)

    @pytest.mark.parametrize(
        "start, end, payment",
        [
            (date(2026, 1, 31), date(2026, 1, 1), date(2026, 2, 25)),
            (date(2026, 1, 1), date(2026, 1, 1), date(2026, 2, 25)),
            (date(2026, 1, 1), date(2026, 1, 31), date(2026, 1, 31)),
        ],
    )
    async def test_invalid_dates_rejected(self, manager, company, start, end, payment):
        config = PeriodConfig(company.company_id, start, end, payment)
        with pytest.raises(InvalidPeriodError):
            await manager.create_payroll_period(config)

    async def test_unknown_period_type_rejected(self, manager, company):
        config = PeriodConfig(
            company.company_id, date(2026, 1, 1), date(2026, 1, 7), date(2026, 1, 9), "daily"
        )
        with pytest.raises(InvalidPeriodError, match="daily"):
            await manager.create_payroll_period(config)

    async def test_list_periods_newest_first(self, manager, company):
        jan = await january(manager, company)
        feb = await manager.create_payroll_period(
            PeriodConfig.monthly(company.company_id, 2026, 2)
        )
        periods = await manager.list_periods(company.company_id)
        assert [p.payroll_period_id for p in periods] == [feb, jan]

    async def test_missing_period(self, manager):
        with pytest.raises(PeriodNotFoundError):
            await manager.get_period(uuid4())


class TestRunCalculation:
    async def test_reference_scenario(self, manager, company, seed):
        employee = await seed.employee(company)
        await seed.timesheet(employee, standard_week())
        period_id = await january(manager, company)

        summary = await manager.run_calculation(period_id, "admin", generate_payslips=False)

        assert summary.status == "calculated"
        assert summary.calculated == [employee.employee_id]
        assert summary.employee_count == 1
        assert summary.total_gross == Decimal("712.50")
        assert summary.total_net == Decimal("413.24")
        assert summary.total_tax == Decimal("263.63")
        assert not summary.has_failures

        [calc] = await manager.get_payroll_calculations(payroll_period_id=period_id)
        assert calc.regular_pay == Decimal("600.00")
        assert calc.overtime_pay == Decimal("112.50")
        assert calc.income_tax == Decimal("263.63")
        assert calc.pension_employee == Decimal("35.63")
        assert calc.net_pay == Decimal("413.24")
        assert calc.ytd_gross == Decimal("712.50")
        assert calc.status == "calculated"
        assert calc.calculated_by == "admin"
        assert calc.tax_table_version == "test-no-social"

        period = await manager.get_period(period_id)
        assert period.total_gross == Decimal("712.50")
        assert period.calculated_at is not None

    async def test_rerun_is_idempotent(self, manager, company, seed):
        employee = await seed.employee(company)
        await seed.timesheet(employee, standard_week())
        period_id = await january(manager, company)

        first = await manager.run_calculation(period_id, generate_payslips=False)
        [calc_before] = await manager.get_payroll_calculations(payroll_period_id=period_id)
        second = await manager.run_calculation(period_id, generate_payslips=False)
        [calc_after] = await manager.get_payroll_calculations(payroll_period_id=period_id)

        assert calc_after.payroll_calculation_id == calc_before.payroll_calculation_id
        assert calc_after.inputs_fingerprint == calc_before.inputs_fingerprint
        assert second.total_gross == first.total_gross
        assert second.employee_count == first.employee_count == 1

    async def test_rerun_picks_up_new_hours(self, manager, company, seed):
        employee = await seed.employee(company)
        await seed.timesheet(employee, standard_week())
        period_id = await january(manager, company)
        await manager.run_calculation(period_id, generate_payslips=False)
        [before] = await manager.get_payroll_calculations(payroll_period_id=period_id)

        await seed.timesheet(
            employee, [{"work_date": date(2026, 1, 12), "regular_hours": Decimal("8")}]
        )
        summary = await manager.run_calculation(period_id, generate_payslips=False)
        [after] = await manager.get_payroll_calculations(payroll_period_id=period_id)

        assert after.payroll_calculation_id == before.payroll_calculation_id
        assert after.regular_hours == Decimal("48")
        assert summary.total_gross == Decimal("832.50")

    async def test_employee_without_hours_is_skipped(self, manager, company, seed):
        worker = await seed.employee(company, last_name="Bakker")
        idle = await seed.employee(company, last_name="Smit")
        await seed.timesheet(worker, standard_week())
        await seed.timesheet(idle, standard_week(), status="submitted")
        period_id = await january(manager, company)

        summary = await manager.run_calculation(period_id, generate_payslips=False)

        assert summary.calculated == [worker.employee_id]
        assert summary.skipped == [idle.employee_id]
        assert summary.employee_count == 1
        calcs = await manager.get_payroll_calculations(employee_id=idle.employee_id)
        assert calcs == []

    async def test_stale_calculation_removed(self, manager, company, seed, session_factory):
        employee = await seed.employee(company)
        timesheet = await seed.timesheet(employee, standard_week())
        period_id = await january(manager, company)
        await manager.run_calculation(period_id, generate_payslips=False)

        async with session_factory() as session:
            await session.execute(
                update(Timesheet)
                .where(Timesheet.timesheet_id == timesheet.timesheet_id)
                .values(status="rejected")
            )
            await session.commit()

        summary = await manager.run_calculation(period_id, generate_payslips=False)

        assert summary.skipped == [employee.employee_id]
        assert summary.employee_count == 0
        assert summary.total_gross == Decimal("0")
        assert await manager.get_payroll_calculations(payroll_period_id=period_id) == []

    async def test_period_totals_are_sums(self, manager, company, seed):
        first = await seed.employee(company, last_name="Aalders")
        second = await seed.employee(company, last_name="Bos", hourly_rate=Decimal("20"))
        await seed.timesheet(first, standard_week())
        await seed.timesheet(
            second, [{"work_date": date(2026, 1, 6), "regular_hours": Decimal("10")}]
        )
        period_id = await january(manager, company)

        summary = await manager.run_calculation(period_id, generate_payslips=False)
        calcs = await manager.get_payroll_calculations(payroll_period_id=period_id)

        assert summary.employee_count == 2
        assert summary.total_gross == sum(c.gross_pay for c in calcs) == Decimal("912.50")
        assert summary.total_net == sum(c.net_pay for c in calcs)
        assert summary.total_tax == sum(c.income_tax for c in calcs)

    async def test_one_failure_does_not_stop_the_run(self, session_factory, company, seed):
        healthy = await seed.employee(company, last_name="Aalders")
        broken = await seed.employee(company, last_name="Bos")
        await seed.timesheet(healthy, standard_week())
        await seed.timesheet(broken, standard_week())

        manager = PayrollPeriodManager(
            session_factory,
            timesheets=FlakyTimesheetStore(
                SqlTimesheetStore(session_factory), [broken.employee_id]
            ),
            max_workers=2,
        )
        period_id = await january(manager, company)

        summary = await manager.run_calculation(period_id, generate_payslips=False)

        assert summary.status == "calculated"
        assert summary.calculated == [healthy.employee_id]
        assert len(summary.failed) == 1
        assert summary.failed[0].employee_id == broken.employee_id
        assert "timesheet service unavailable" in summary.failed[0].error
        assert summary.employee_count == 1

    async def test_many_employees_in_parallel(self, manager, company, seed):
        employees = [await seed.employee(company, last_name=f"Werker {i:02d}") for i in range(12)]
        for employee in employees:
            await seed.timesheet(employee, standard_week())
        period_id = await january(manager, company)

        summary = await manager.run_calculation(period_id, generate_payslips=False)

        assert sorted(summary.calculated) == sorted(e.employee_id for e in employees)
        assert summary.employee_count == 12
        assert summary.total_gross == Decimal("712.50") * 12

    async def test_calculation_query_requires_filter(self, manager):
        with pytest.raises(ValueError):
            await manager.get_payroll_calculations()

    async def test_audit_trail(self, manager, company, seed, session_factory):
        employee = await seed.employee(company)
        await seed.timesheet(employee, standard_week())
        period_id = await january(manager, company)
        await manager.run_calculation(period_id, "admin", generate_payslips=False)
        await manager.approve_period(period_id, "controller")

        async with session_factory() as session:
            result = await session.execute(
                select(AuditEvent)
                .where(AuditEvent.entity_id == period_id)
            )
            events = list(result.scalars().all())

        by_action = {e.action: e for e in events}
        assert set(by_action) == {
            "created",
            "status_change:draft:calculated",
            "status_change:calculated:approved",
        }
        assert by_action["created"].actor_id == "admin"
        assert by_action["status_change:draft:calculated"].details_json["employee_count"] == 1
        assert by_action["status_change:calculated:approved"].actor_id == "controller"


class TestTransitions:
    async def _calculated_period(self, manager, company, seed):
        employee = await seed.employee(company)
        await seed.timesheet(employee, standard_week())
        period_id = await january(manager, company)
        await manager.run_calculation(period_id, generate_payslips=False)
        return period_id

    async def test_approve_and_pay(self, manager, company, seed):
        period_id = await self._calculated_period(manager, company, seed)

        approved = await manager.approve_period(period_id, "controller")
        assert approved.status == "approved"
        assert approved.approved_by == "controller"
        assert approved.approved_at is not None
        [calc] = await manager.get_payroll_calculations(payroll_period_id=period_id)
        assert calc.status == "approved"
        assert calc.net_pay == Decimal("413.24")

        paid = await manager.mark_paid(period_id, "controller")
        assert paid.status == "paid"
        assert paid.paid_at is not None
        [calc] = await manager.get_payroll_calculations(payroll_period_id=period_id)
        assert calc.status == "paid"

    async def test_cannot_approve_draft(self, manager, company):
        period_id = await january(manager, company)
        with pytest.raises(InvalidTransitionError):
            await manager.approve_period(period_id)

    async def test_cannot_pay_unapproved(self, manager, company, seed):
        period_id = await self._calculated_period(manager, company, seed)
        with pytest.raises(InvalidTransitionError):
            await manager.mark_paid(period_id)

    async def test_cannot_recalculate_approved(self, manager, company, seed):
        period_id = await self._calculated_period(manager, company, seed)
        await manager.approve_period(period_id)

        with pytest.raises(InvalidTransitionError, match="draft or calculated"):
            await manager.run_calculation(period_id)

    async def test_approval_during_rerun_keeps_approved_figures(
        self, manager, company, seed, session_factory
    ):
        period_id = await self._calculated_period(manager, company, seed)
        [employee] = await manager.directory.get_employees(company.company_id)
        await seed.timesheet(employee, standard_week(start=date(2026, 1, 12)))

        rerun = PayrollPeriodManager(
            session_factory,
            timesheets=HookedTimesheetStore(
                SqlTimesheetStore(session_factory),
                lambda: manager.approve_period(period_id, "controller"),
            ),
            max_workers=2,
        )
        with pytest.raises(InvalidTransitionError, match="'approved' to 'calculated'"):
            await rerun.run_calculation(period_id, generate_payslips=False)

        period = await manager.get_period(period_id)
        assert period.status == "approved"
        assert period.total_gross == Decimal("712.50")
        [calc] = await manager.get_payroll_calculations(payroll_period_id=period_id)
        assert calc.status == "approved"
        assert calc.gross_pay == Decimal("712.50")
        assert calc.regular_hours == Decimal("40")

    async def test_cannot_supersede_draft(self, manager, company):
        period_id = await january(manager, company)
        with pytest.raises(InvalidTransitionError):
            await manager.supersede_period(period_id)

    async def test_supersede_opens_replacement(self, manager, company, seed):
        period_id = await self._calculated_period(manager, company, seed)
        await manager.approve_period(period_id)

        new_id = await manager.supersede_period(period_id, "controller")

        old = await manager.get_period(period_id)
        new = await manager.get_period(new_id)
        assert old.status == "superseded"
        assert new.status == "draft"
        assert new.supersedes_period_id == period_id
        assert (new.start_date, new.end_date) == (old.start_date, old.end_date)

        # Old calculations stay for audit; the replacement is calculated afresh
        assert len(await manager.get_payroll_calculations(payroll_period_id=period_id)) == 1
        summary = await manager.run_calculation(new_id, generate_payslips=False)
        assert summary.total_gross == Decimal("712.50")

        with pytest.raises(InvalidTransitionError):
            await manager.run_calculation(period_id)


class TestYearToDate:
    async def test_ytd_accumulates_over_periods(self, manager, company, seed):
        employee = await seed.employee(company)
        await seed.timesheet(employee, standard_week())
        await seed.timesheet(employee, standard_week(date(2026, 2, 2)))

        jan = await january(manager, company)
        await manager.run_calculation(jan, generate_payslips=False)
        feb = await manager.create_payroll_period(
            PeriodConfig.monthly(company.company_id, 2026, 2)
        )
        await manager.run_calculation(feb, generate_payslips=False)

        [feb_calc] = await manager.get_payroll_calculations(payroll_period_id=feb)
        assert feb_calc.ytd_gross == Decimal("1425.00")
        assert feb_calc.ytd_tax == Decimal("527.26")
        assert feb_calc.ytd_net == Decimal("826.48")

    async def test_ytd_resets_each_year(self, manager, company, seed):
        employee = await seed.employee(company)
        await seed.timesheet(employee, standard_week(date(2025, 12, 1)))
        await seed.timesheet(employee, standard_week())

        dec = await manager.create_payroll_period(
            PeriodConfig.monthly(company.company_id, 2025, 12)
        )
        await manager.run_calculation(dec, generate_payslips=False)
        jan = await january(manager, company)
        await manager.run_calculation(jan, generate_payslips=False)

        [jan_calc] = await manager.get_payroll_calculations(payroll_period_id=jan)
        assert jan_calc.ytd_gross == Decimal("712.50")

    async def test_superseded_period_not_counted(self, manager, company, seed):
        employee = await seed.employee(company)
        await seed.timesheet(employee, standard_week())
        await seed.timesheet(employee, standard_week(date(2026, 2, 2)))

        jan = await january(manager, company)
        await manager.run_calculation(jan, generate_payslips=False)
        await manager.supersede_period(jan)
        feb = await manager.create_payroll_period(
            PeriodConfig.monthly(company.company_id, 2026, 2)
        )
        await manager.run_calculation(feb, generate_payslips=False)

        [feb_calc] = await manager.get_payroll_calculations(payroll_period_id=feb)
        assert feb_calc.ytd_gross == Decimal("712.50")

