"""Payroll calculation engine."""

from payslip_engine.calculators.earnings_calculator import EarningsCalculator
from payslip_engine.calculators.engine import PayrollEngine
from payslip_engine.calculators.rate_resolver import CompanyRateLookup, RateResolver
from payslip_engine.calculators.tax_calculator import (
    TaxCalculator,
    TaxTableResolver,
    resolve_tax_profile,
)
from payslip_engine.calculators.time_aggregator import aggregate_hours

__all__ = [
    "CompanyRateLookup",
    "EarningsCalculator",
    "PayrollEngine",
    "RateResolver",
    "TaxCalculator",
    "TaxTableResolver",
    "aggregate_hours",
    "resolve_tax_profile",
]
