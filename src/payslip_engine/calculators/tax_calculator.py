"""Tax and contribution calculation from versioned flat-rate tables."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payslip_engine.calculators.types import (
    DEFAULT_HOLIDAY_ALLOWANCE_PCT,
    DEFAULT_TAX_TABLE,
    ZERO,
    PayrollTaxes,
    TaxProfile,
    TaxTable,
    TaxTableConfig,
    round_to_cents,
)
from payslip_engine.models import TaxTableVersion

if TYPE_CHECKING:
    from payslip_engine.models import Company, Employee

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def resolve_tax_profile(employee: Employee, company: Company | None = None) -> TaxProfile:
    """Build the tax profile for an employee, filling gaps with defaults.

    Missing table -> white, missing credit -> none, missing pension
    percentage -> company percentage, else 0.
    """
    if employee.tax_table is None:
        logger.warning("Employee %s has no tax table, using white", employee.employee_id)
        table = TaxTable.WHITE
    else:
        table = TaxTable(employee.tax_table)

    pension_pct = employee.pension_contribution_pct
    if pension_pct is None and company is not None:
        pension_pct = company.pension_contribution_pct

    return TaxProfile(
        tax_table=table,
        tax_credit=bool(employee.tax_credit),
        pension_employee_pct=Decimal(pension_pct) if pension_pct is not None else ZERO,
        pension_employer_pct=(
            Decimal(employee.pension_employer_contribution_pct)
            if employee.pension_employer_contribution_pct is not None
            else ZERO
        ),
    )


class TaxCalculator:
    """Calculates statutory deductions with a single flat rate per table.

    income_tax = gross * table_rate * (credit_factor if tax_credit else 1)
    social_security_employee = gross * (aow + wlz + ww + wia)
    social_security_employer mirrors the employee contribution
    pension_employee / pension_employer = gross * pct / 100

    Each component is rounded half-up to cents on its own.
    """

    def __init__(self, config: TaxTableConfig = DEFAULT_TAX_TABLE):
        self.config = config

    def calculate(self, gross_pay: Decimal, profile: TaxProfile) -> PayrollTaxes:
        cfg = self.config
        credit = cfg.tax_credit_factor if profile.tax_credit else Decimal("1")
        social = round_to_cents(gross_pay * cfg.social_security_rate)

        return PayrollTaxes(
            income_tax=round_to_cents(gross_pay * cfg.table_rate(profile.tax_table) * credit),
            social_security_employee=social,
            social_security_employer=social,
            health_insurance=round_to_cents(gross_pay * cfg.health_insurance_rate),
            pension_employee=round_to_cents(gross_pay * profile.pension_employee_pct / HUNDRED),
            pension_employer=round_to_cents(gross_pay * profile.pension_employer_pct / HUNDRED),
            unemployment_insurance=round_to_cents(gross_pay * cfg.ww_rate),
            disability_insurance=round_to_cents(gross_pay * cfg.wia_rate),
        )

    @staticmethod
    def net_pay(gross_pay: Decimal, taxes: PayrollTaxes) -> Decimal:
        """NET = gross - income tax - employee social security - employee pension."""
        return round_to_cents(gross_pay - taxes.employee_withholdings)

    @staticmethod
    def vacation_accrual(gross_pay: Decimal, holiday_allowance_pct: Decimal | None) -> Decimal:
        pct = DEFAULT_HOLIDAY_ALLOWANCE_PCT if holiday_allowance_pct is None else holiday_allowance_pct
        return round_to_cents(gross_pay * Decimal(pct) / HUNDRED)


class TaxTableResolver:
    """Loads the tax table version effective on a date."""

    def __init__(self, session: AsyncSession, default: TaxTableConfig = DEFAULT_TAX_TABLE):
        self.session = session
        self.default = default

    async def resolve(self, as_of_date: date) -> TaxTableConfig:
        result = await self.session.execute(
            select(TaxTableVersion)
            .where(
                TaxTableVersion.effective_start <= as_of_date,
                (
                    TaxTableVersion.effective_end.is_(None)
                    | (TaxTableVersion.effective_end >= as_of_date)
                ),
            )
            .order_by(TaxTableVersion.effective_start.desc())
            .limit(1)
        )
        version = result.scalar_one_or_none()
        if version is None:
            logger.warning("No tax table version effective %s, using %s", as_of_date, self.default.version)
            return self.default

        return TaxTableConfig.from_payload(
            version.version, version.effective_start, version.payload_json or {}
        )
