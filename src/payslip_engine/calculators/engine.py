"""Payroll calculation engine - per-employee pipeline."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from datetime import date
from typing import TYPE_CHECKING, Any

from payslip_engine.calculators.earnings_calculator import EarningsCalculator
from payslip_engine.calculators.rate_resolver import RateResolver
from payslip_engine.calculators.tax_calculator import TaxCalculator, resolve_tax_profile
from payslip_engine.calculators.time_aggregator import aggregate_hours
from payslip_engine.calculators.types import (
    DEFAULT_TAX_TABLE,
    EarningCode,
    EmployeeCalculation,
    HourBucket,
    RateSchedule,
    TaxProfile,
    TaxTableConfig,
)
from payslip_engine.config import get_settings

if TYPE_CHECKING:
    from payslip_engine.models import Company, Employee, HourlyRateSchedule, Timesheet


class PayrollEngine:
    """Per-employee payroll pipeline.

    Stages run in a fixed order, each consuming only the previous output:
    1) Aggregate approved hours within the period
    2) Resolve the rate schedule and travel rate
    3) Compute earnings lines and gross pay
    4) Compute taxes, net pay and vacation accrual

    The engine does no I/O; callers load inputs and persist the result.
    """

    def __init__(
        self,
        tax_config: TaxTableConfig = DEFAULT_TAX_TABLE,
        rate_resolver: RateResolver | None = None,
        engine_version: str | None = None,
    ):
        self.tax_config = tax_config
        self.rate_resolver = rate_resolver or RateResolver()
        self.earnings_calculator = EarningsCalculator()
        self.tax_calculator = TaxCalculator(tax_config)
        self.engine_version = engine_version or get_settings().engine_version

    def calculate_employee(
        self,
        employee: Employee,
        company: Company | None,
        timesheets: Iterable[Timesheet],
        period_start: date,
        period_end: date,
        company_schedule: HourlyRateSchedule | None = None,
    ) -> EmployeeCalculation | None:
        """Run the pipeline for one employee.

        Returns None when the employee has no approved hours in the period.
        """
        # 1) Hours
        bucket = aggregate_hours(timesheets, period_start, period_end)
        if bucket.is_empty:
            return None

        # 2) Rates
        schedule = self.rate_resolver.resolve(employee.hourly_rate, company_schedule)
        travel_rate = self.rate_resolver.resolve_travel_rate(
            employee.travel_allowance_per_km,
            company.travel_allowance_per_km if company is not None else None,
        )

        # 3) Earnings
        earnings = self.earnings_calculator.calculate(bucket, schedule, travel_rate)

        # 4) Taxes
        profile = resolve_tax_profile(employee, company)
        taxes = self.tax_calculator.calculate(earnings.gross_pay, profile)
        net_pay = self.tax_calculator.net_pay(earnings.gross_pay, taxes)

        holiday_pct = employee.holiday_allowance_pct
        if holiday_pct is None and company is not None:
            holiday_pct = company.holiday_allowance_pct
        vacation_accrual = self.tax_calculator.vacation_accrual(earnings.gross_pay, holiday_pct)

        return EmployeeCalculation(
            employee_id=employee.employee_id,
            company_id=employee.company_id,
            period_start=period_start,
            period_end=period_end,
            hours=bucket,
            schedule=schedule,
            earnings=earnings,
            travel_rate=travel_rate,
            taxes=taxes,
            net_pay=net_pay,
            vacation_accrual=vacation_accrual,
            tax_table_version=self.tax_config.version,
            inputs_fingerprint=self.compute_inputs_fingerprint(
                bucket, schedule, travel_rate, profile
            ),
        )

    def compute_inputs_fingerprint(
        self,
        bucket: HourBucket,
        schedule: RateSchedule,
        travel_rate: Any,
        profile: TaxProfile,
    ) -> str:
        """Fingerprint of every input that affects the result."""
        data = {
            "engine_version": self.engine_version,
            "hours": bucket.to_canonical_dict(),
            "schedule": schedule.to_dict(),
            "travel_rate": str(travel_rate),
            "tax_profile": profile.to_dict(),
            "tax_table": self.tax_config.to_dict(),
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    @staticmethod
    def to_record_values(result: EmployeeCalculation) -> dict[str, Any]:
        """Flatten a result into PayrollCalculation column values."""
        values: dict[str, Any] = {
            "employee_id": result.employee_id,
            "company_id": result.company_id,
            "period_start_date": result.period_start,
            "period_end_date": result.period_end,
            "travel_kilometers": result.hours.travel_km,
            "travel_rate": result.earnings.line(EarningCode.TRAVEL).rate,
            "travel_allowance": result.earnings.travel_allowance,
            "other_earnings": [],
            "gross_pay": result.gross_pay,
            "deductions": [],
            "net_pay": result.net_pay,
            "vacation_accrual": result.vacation_accrual,
            "tax_table_version": result.tax_table_version,
            "rate_schedule_json": result.schedule.to_dict(),
            "inputs_fingerprint": result.inputs_fingerprint,
        }
        for line in result.earnings.lines:
            if line.code == EarningCode.TRAVEL:
                continue
            values[f"{line.code.value}_hours"] = line.quantity
            values[f"{line.code.value}_rate"] = line.rate
            values[f"{line.code.value}_pay"] = line.amount
        values.update(result.taxes.to_dict())
        return values
