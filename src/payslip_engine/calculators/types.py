"""Type definitions for calculation pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

PRECISION = Decimal("0.0001")  # 4 decimal places for rates
OUTPUT_PRECISION = Decimal("0.01")  # 2 decimal places for persisted amounts

ZERO = Decimal("0")


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount to 2 decimal places (cents), half-up."""
    return amount.quantize(OUTPUT_PRECISION, rounding=ROUND_HALF_UP)


def round_rate(amount: Decimal) -> Decimal:
    """Round a per-unit rate to 4 decimal places, half-up."""
    return amount.quantize(PRECISION, rounding=ROUND_HALF_UP)


class EarningCode(str, Enum):
    """Earning line codes, in payslip order."""

    REGULAR = "regular"
    OVERTIME = "overtime"
    EVENING = "evening"
    NIGHT = "night"
    WEEKEND = "weekend"
    HOLIDAY = "holiday"
    TRAVEL = "travel"


class TaxTable(str, Enum):
    """Wage tax table."""

    WHITE = "white"
    GREEN = "green"


@dataclass(frozen=True)
class HourBucket:
    """Typed hour totals for one employee over one period."""

    regular: Decimal = ZERO
    overtime: Decimal = ZERO
    evening: Decimal = ZERO
    night: Decimal = ZERO
    weekend: Decimal = ZERO
    travel_km: Decimal = ZERO

    @property
    def total_hours(self) -> Decimal:
        """Sum of worked hours (travel excluded)."""
        return self.regular + self.overtime + self.evening + self.night + self.weekend

    @property
    def is_empty(self) -> bool:
        return self.total_hours == 0

    def to_canonical_dict(self) -> dict[str, str]:
        """Return canonical dict for hashing."""
        return {k: str(v) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class RateSchedule:
    """Base rate plus differential multipliers (percent of base, 100 = none)."""

    base_rate: Decimal
    overtime_multiplier: Decimal
    evening_multiplier: Decimal
    night_multiplier: Decimal
    weekend_multiplier: Decimal
    holiday_multiplier: Decimal

    MULTIPLIER_FIELDS = (
        "overtime_multiplier",
        "evening_multiplier",
        "night_multiplier",
        "weekend_multiplier",
        "holiday_multiplier",
    )

    def multiplier_for(self, code: EarningCode) -> Decimal:
        """Multiplier for an hour category (regular is always 100)."""
        if code == EarningCode.REGULAR:
            return Decimal("100")
        return getattr(self, f"{code.value}_multiplier")

    def to_dict(self) -> dict[str, str]:
        return {
            "base_rate": str(self.base_rate),
            "overtime_multiplier": str(self.overtime_multiplier),
            "evening_multiplier": str(self.evening_multiplier),
            "night_multiplier": str(self.night_multiplier),
            "weekend_multiplier": str(self.weekend_multiplier),
            "holiday_multiplier": str(self.holiday_multiplier),
        }


DEFAULT_RATE_SCHEDULE = RateSchedule(
    base_rate=Decimal("15.00"),
    overtime_multiplier=Decimal("150"),
    evening_multiplier=Decimal("125"),
    night_multiplier=Decimal("150"),
    weekend_multiplier=Decimal("150"),
    holiday_multiplier=Decimal("200"),
)

DEFAULT_TRAVEL_RATE = Decimal("0.23")
DEFAULT_HOLIDAY_ALLOWANCE_PCT = Decimal("8")


@dataclass(frozen=True)
class EarningLine:
    """One itemized earning line."""

    code: EarningCode
    description: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    taxable: bool = True


@dataclass
class EarningsResult:
    """Ordered earning lines plus the gross-pay total."""

    lines: list[EarningLine]
    gross_pay: Decimal
    travel_allowance: Decimal

    def line(self, code: EarningCode) -> EarningLine:
        for line in self.lines:
            if line.code == code:
                return line
        raise KeyError(code)


@dataclass(frozen=True)
class TaxProfile:
    """Employee tax configuration after fallbacks are applied."""

    tax_table: TaxTable = TaxTable.WHITE
    tax_credit: bool = False
    pension_employee_pct: Decimal = ZERO
    pension_employer_pct: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "tax_table": self.tax_table.value,
            "tax_credit": self.tax_credit,
            "pension_employee_pct": str(self.pension_employee_pct),
            "pension_employer_pct": str(self.pension_employer_pct),
        }


@dataclass(frozen=True)
class TaxTableConfig:
    """Versioned tax and contribution rates (decimals, 0.37 = 37%)."""

    version: str
    effective_from: date
    white_table_rate: Decimal = Decimal("0.37")
    green_table_rate: Decimal = Decimal("0.36")
    tax_credit_factor: Decimal = Decimal("0.9")
    aow_rate: Decimal = Decimal("0.1795")
    wlz_rate: Decimal = Decimal("0.0945")
    ww_rate: Decimal = Decimal("0.0282")
    wia_rate: Decimal = ZERO
    health_insurance_rate: Decimal = ZERO

    RATE_FIELDS = (
        "white_table_rate",
        "green_table_rate",
        "tax_credit_factor",
        "aow_rate",
        "wlz_rate",
        "ww_rate",
        "wia_rate",
        "health_insurance_rate",
    )

    @property
    def social_security_rate(self) -> Decimal:
        """Combined employee social contribution rate."""
        return self.aow_rate + self.wlz_rate + self.ww_rate + self.wia_rate

    def table_rate(self, table: TaxTable) -> Decimal:
        if table == TaxTable.GREEN:
            return self.green_table_rate
        return self.white_table_rate

    @classmethod
    def from_payload(
        cls, version: str, effective_from: date, payload: dict[str, Any]
    ) -> TaxTableConfig:
        """Build from a stored payload; absent keys keep the built-in rates."""
        rates = {
            name: Decimal(str(payload[name]))
            for name in cls.RATE_FIELDS
            if payload.get(name) is not None
        }
        return cls(version=version, effective_from=effective_from, **rates)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "version": self.version,
            "effective_from": self.effective_from.isoformat(),
        }
        for name in self.RATE_FIELDS:
            data[name] = str(getattr(self, name))
        return data


DEFAULT_TAX_TABLE = TaxTableConfig(version="nl-flat-default", effective_from=date(2000, 1, 1))


@dataclass(frozen=True)
class PayrollTaxes:
    """Statutory deductions and employer contributions, rounded to cents."""

    income_tax: Decimal = ZERO
    social_security_employee: Decimal = ZERO
    social_security_employer: Decimal = ZERO
    health_insurance: Decimal = ZERO
    pension_employee: Decimal = ZERO
    pension_employer: Decimal = ZERO
    unemployment_insurance: Decimal = ZERO
    disability_insurance: Decimal = ZERO

    @property
    def employee_withholdings(self) -> Decimal:
        """Amounts that reduce net pay."""
        return self.income_tax + self.social_security_employee + self.pension_employee

    def to_dict(self) -> dict[str, Decimal]:
        return asdict(self)


@dataclass
class EmployeeCalculation:
    """Output of the per-employee pipeline, ready to persist."""

    employee_id: Any  # UUID
    company_id: Any  # UUID
    period_start: date
    period_end: date
    hours: HourBucket
    schedule: RateSchedule
    earnings: EarningsResult
    travel_rate: Decimal
    taxes: PayrollTaxes
    net_pay: Decimal
    vacation_accrual: Decimal
    tax_table_version: str
    inputs_fingerprint: str

    @property
    def gross_pay(self) -> Decimal:
        return self.earnings.gross_pay
