"""Earnings lines and gross pay from hour totals and a rate schedule."""

from __future__ import annotations

from decimal import Decimal

from payslip_engine.calculators.types import (
    ZERO,
    EarningCode,
    EarningLine,
    EarningsResult,
    HourBucket,
    RateSchedule,
    round_rate,
    round_to_cents,
)

HUNDRED = Decimal("100")

# Hour categories in payslip order with their line descriptions
HOUR_CATEGORIES: tuple[tuple[EarningCode, str], ...] = (
    (EarningCode.REGULAR, "Regular hours"),
    (EarningCode.OVERTIME, "Overtime"),
    (EarningCode.EVENING, "Evening hours"),
    (EarningCode.NIGHT, "Night hours"),
    (EarningCode.WEEKEND, "Weekend hours"),
    (EarningCode.HOLIDAY, "Holiday hours"),
)


class EarningsCalculator:
    """Builds itemized earnings.

    pay = hours * base_rate * multiplier / 100, rounded half-up to cents.
    Travel is a reimbursement line and is not part of gross pay.
    """

    @staticmethod
    def category_pay(hours: Decimal, base_rate: Decimal, multiplier: Decimal) -> Decimal:
        return round_to_cents(hours * base_rate * multiplier / HUNDRED)

    @staticmethod
    def category_rate(base_rate: Decimal, multiplier: Decimal) -> Decimal:
        return round_rate(base_rate * multiplier / HUNDRED)

    def calculate(
        self,
        bucket: HourBucket,
        schedule: RateSchedule,
        travel_rate: Decimal,
    ) -> EarningsResult:
        lines: list[EarningLine] = []
        gross = ZERO

        for code, description in HOUR_CATEGORIES:
            hours = self._hours_for(bucket, code)
            multiplier = schedule.multiplier_for(code)
            amount = self.category_pay(hours, schedule.base_rate, multiplier)
            gross += amount
            lines.append(
                EarningLine(
                    code=code,
                    description=description,
                    quantity=hours,
                    rate=self.category_rate(schedule.base_rate, multiplier),
                    amount=amount,
                )
            )

        travel_allowance = round_to_cents(bucket.travel_km * travel_rate)
        lines.append(
            EarningLine(
                code=EarningCode.TRAVEL,
                description="Travel allowance",
                quantity=bucket.travel_km,
                rate=round_rate(travel_rate),
                amount=travel_allowance,
                taxable=False,
            )
        )

        return EarningsResult(
            lines=lines,
            gross_pay=round_to_cents(gross),
            travel_allowance=travel_allowance,
        )

    @staticmethod
    def _hours_for(bucket: HourBucket, code: EarningCode) -> Decimal:
        # Holiday hours are not tracked on timesheets
        if code == EarningCode.HOLIDAY:
            return ZERO
        return getattr(bucket, code.value)
