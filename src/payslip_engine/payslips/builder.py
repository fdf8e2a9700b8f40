"""Payslip view model assembly from a stored calculation."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from payslip_engine.calculators.types import ZERO, EarningCode, round_to_cents

if TYPE_CHECKING:
    from payslip_engine.models import Company, Employee, PayrollCalculation, PayrollPeriod

# Payslip labels per earning code, in payslip order
EARNING_LABELS: tuple[tuple[EarningCode, str], ...] = (
    (EarningCode.REGULAR, "Normale uren"),
    (EarningCode.OVERTIME, "Overuren"),
    (EarningCode.EVENING, "Avonduren"),
    (EarningCode.NIGHT, "Nachturen"),
    (EarningCode.WEEKEND, "Weekenduren"),
    (EarningCode.HOLIDAY, "Feestdaguren"),
    (EarningCode.TRAVEL, "Reiskostenvergoeding"),
)


@dataclass(frozen=True)
class CompanyHeader:
    name: str
    address: str | None
    postal_code: str | None
    city: str | None
    country: str | None
    kvk_number: str | None
    tax_number: str | None
    logo_url: str | None


@dataclass(frozen=True)
class EmployeeHeader:
    name: str
    address: str | None
    postal_code: str | None
    city: str | None
    bsn: str | None
    tax_table: str | None
    employee_number: str
    job_title: str | None


@dataclass(frozen=True)
class PeriodBlock:
    start_date: date
    end_date: date
    payment_date: date
    payroll_number: str


@dataclass(frozen=True)
class PayslipLine:
    description: str
    amount: Decimal
    quantity: Decimal | None = None
    rate: Decimal | None = None


@dataclass(frozen=True)
class PayslipSummary:
    gross_pay: Decimal
    total_deductions: Decimal
    total_taxes: Decimal
    income_tax: Decimal
    net_pay: Decimal
    ytd_gross: Decimal
    ytd_income_tax: Decimal
    ytd_net: Decimal


@dataclass(frozen=True)
class LeaveSnapshot:
    vacation_days_accrued: Decimal
    vacation_days_taken: Decimal
    vacation_days_balance: Decimal
    vacation_accrual_amount: Decimal


@dataclass(frozen=True)
class PensionBlock:
    employee_contribution: Decimal
    employer_contribution: Decimal


@dataclass
class PayslipViewModel:
    """Everything a renderer needs to draw one payslip."""

    company: CompanyHeader
    employee: EmployeeHeader
    period: PeriodBlock
    summary: PayslipSummary
    leave: LeaveSnapshot
    pension: PensionBlock
    earnings: list[PayslipLine] = field(default_factory=list)
    deductions: list[PayslipLine] = field(default_factory=list)
    taxes: list[PayslipLine] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _money(value: Any) -> Decimal:
    return round_to_cents(Decimal(str(value))) if value is not None else ZERO


def _join(*parts: str | None) -> str | None:
    text = " ".join(p for p in parts if p)
    return text or None


class PayslipBuilder:
    """Builds a PayslipViewModel. Pure; reads only its arguments."""

    def build(
        self,
        calculation: PayrollCalculation,
        employee: Employee,
        company: Company,
        period: PayrollPeriod,
    ) -> PayslipViewModel:
        earnings = [
            line for line in self._earning_lines(calculation) if line.amount > 0
        ]
        deductions = [
            PayslipLine(description=d.get("description", ""), amount=_money(d.get("amount")))
            for d in calculation.deductions or []
        ]
        taxes = [
            PayslipLine("Loonheffing", _money(calculation.income_tax)),
            PayslipLine("Werknemersverzekeringen", _money(calculation.social_security_employee)),
            PayslipLine("Pensioenpremie werknemer", _money(calculation.pension_employee)),
        ]

        summary = PayslipSummary(
            gross_pay=_money(calculation.gross_pay),
            total_deductions=sum((d.amount for d in deductions), ZERO),
            total_taxes=sum((t.amount for t in taxes), ZERO),
            income_tax=_money(calculation.income_tax),
            net_pay=_money(calculation.net_pay),
            ytd_gross=_money(calculation.ytd_gross),
            ytd_income_tax=_money(calculation.ytd_tax),
            ytd_net=_money(calculation.ytd_net),
        )

        return PayslipViewModel(
            company=CompanyHeader(
                name=company.name,
                address=company.street,
                postal_code=company.zip_code,
                city=company.city,
                country=company.country,
                kvk_number=company.kvk_number,
                tax_number=company.tax_number,
                logo_url=company.logo_url,
            ),
            employee=EmployeeHeader(
                name=employee.full_name,
                address=_join(employee.street, employee.house_number),
                postal_code=employee.postal_code,
                city=employee.city,
                bsn=employee.bsn,
                tax_table=employee.tax_table,
                employee_number=employee.employee_number or str(employee.employee_id),
                job_title=employee.job_title,
            ),
            period=PeriodBlock(
                start_date=calculation.period_start_date,
                end_date=calculation.period_end_date,
                payment_date=period.payment_date,
                payroll_number=str(calculation.payroll_calculation_id),
            ),
            earnings=earnings,
            deductions=deductions,
            taxes=taxes,
            summary=summary,
            leave=LeaveSnapshot(
                vacation_days_accrued=employee.vacation_days_accrued or ZERO,
                vacation_days_taken=employee.vacation_days_taken or ZERO,
                vacation_days_balance=(employee.vacation_days_accrued or ZERO)
                - (employee.vacation_days_taken or ZERO),
                vacation_accrual_amount=_money(calculation.vacation_accrual),
            ),
            pension=PensionBlock(
                employee_contribution=_money(calculation.pension_employee),
                employer_contribution=_money(calculation.pension_employer),
            ),
        )

    @staticmethod
    def _earning_lines(calculation: PayrollCalculation) -> list[PayslipLine]:
        lines = []
        for code, label in EARNING_LABELS:
            if code == EarningCode.TRAVEL:
                quantity = calculation.travel_kilometers
                rate = calculation.travel_rate
                amount = calculation.travel_allowance
            else:
                quantity = getattr(calculation, f"{code.value}_hours")
                rate = getattr(calculation, f"{code.value}_rate")
                amount = getattr(calculation, f"{code.value}_pay")
            lines.append(
                PayslipLine(description=label, amount=_money(amount), quantity=quantity, rate=rate)
            )
        return lines
