"""Unit tests for EarningsCalculator."""

from decimal import Decimal

from hypothesis import given, strategies as st

from payslip_engine.calculators.earnings_calculator import EarningsCalculator
from payslip_engine.calculators.types import (
    DEFAULT_RATE_SCHEDULE,
    EarningCode,
    HourBucket,
    RateSchedule,
)

hours = st.decimals(min_value=0, max_value=300, places=2, allow_nan=False, allow_infinity=False)


class TestEarningLines:
    def test_reference_week(self):
        bucket = HourBucket(regular=Decimal("40"), overtime=Decimal("5"))
        result = EarningsCalculator().calculate(bucket, DEFAULT_RATE_SCHEDULE, Decimal("0.23"))

        regular = result.line(EarningCode.REGULAR)
        overtime = result.line(EarningCode.OVERTIME)
        assert regular.amount == Decimal("600.00")
        assert regular.rate == Decimal("15.0000")
        assert overtime.amount == Decimal("112.50")
        assert overtime.rate == Decimal("22.5000")
        assert result.gross_pay == Decimal("712.50")

    def test_lines_are_ordered(self):
        result = EarningsCalculator().calculate(
            HourBucket(regular=Decimal("1")), DEFAULT_RATE_SCHEDULE, Decimal("0.23")
        )
        assert [line.code for line in result.lines] == [
            EarningCode.REGULAR,
            EarningCode.OVERTIME,
            EarningCode.EVENING,
            EarningCode.NIGHT,
            EarningCode.WEEKEND,
            EarningCode.HOLIDAY,
            EarningCode.TRAVEL,
        ]

    def test_differential_categories(self):
        bucket = HourBucket(evening=Decimal("4"), night=Decimal("2"), weekend=Decimal("3"))
        result = EarningsCalculator().calculate(bucket, DEFAULT_RATE_SCHEDULE, Decimal("0"))

        assert result.line(EarningCode.EVENING).amount == Decimal("75.00")
        assert result.line(EarningCode.NIGHT).amount == Decimal("45.00")
        assert result.line(EarningCode.WEEKEND).amount == Decimal("67.50")
        assert result.gross_pay == Decimal("187.50")

    def test_holiday_line_is_always_zero(self):
        result = EarningsCalculator().calculate(
            HourBucket(regular=Decimal("8")), DEFAULT_RATE_SCHEDULE, Decimal("0.23")
        )
        holiday = result.line(EarningCode.HOLIDAY)
        assert holiday.quantity == Decimal("0")
        assert holiday.amount == Decimal("0.00")
        assert holiday.rate == Decimal("30.0000")

    def test_travel_is_reported_but_not_gross(self):
        bucket = HourBucket(regular=Decimal("8"), travel_km=Decimal("42"))
        result = EarningsCalculator().calculate(bucket, DEFAULT_RATE_SCHEDULE, Decimal("0.23"))

        travel = result.line(EarningCode.TRAVEL)
        assert travel.amount == Decimal("9.66")
        assert travel.taxable is False
        assert result.travel_allowance == Decimal("9.66")
        assert result.gross_pay == Decimal("120.00")

    def test_pay_rounds_half_up(self):
        schedule = RateSchedule(
            base_rate=Decimal("13.33"),
            overtime_multiplier=Decimal("125"),
            evening_multiplier=Decimal("100"),
            night_multiplier=Decimal("100"),
            weekend_multiplier=Decimal("100"),
            holiday_multiplier=Decimal("100"),
        )
        result = EarningsCalculator().calculate(
            HourBucket(overtime=Decimal("1")), schedule, Decimal("0")
        )
        # 13.33 * 1.25 = 16.6625
        assert result.line(EarningCode.OVERTIME).amount == Decimal("16.66")
        assert result.line(EarningCode.OVERTIME).rate == Decimal("16.6625")

    def test_same_inputs_same_output(self):
        bucket = HourBucket(regular=Decimal("37.5"), night=Decimal("3.25"), travel_km=Decimal("11"))
        first = EarningsCalculator().calculate(bucket, DEFAULT_RATE_SCHEDULE, Decimal("0.21"))
        second = EarningsCalculator().calculate(bucket, DEFAULT_RATE_SCHEDULE, Decimal("0.21"))
        assert first == second


class TestGrossInvariant:
    @given(regular=hours, overtime=hours, evening=hours, night=hours, weekend=hours, km=hours)
    def test_gross_is_sum_of_hour_lines(self, regular, overtime, evening, night, weekend, km):
        bucket = HourBucket(
            regular=regular,
            overtime=overtime,
            evening=evening,
            night=night,
            weekend=weekend,
            travel_km=km,
        )
        result = EarningsCalculator().calculate(bucket, DEFAULT_RATE_SCHEDULE, Decimal("0.23"))

        hour_lines = [line for line in result.lines if line.code != EarningCode.TRAVEL]
        assert result.gross_pay == sum((line.amount for line in hour_lines), Decimal("0"))
        assert all(line.amount >= 0 for line in result.lines)
