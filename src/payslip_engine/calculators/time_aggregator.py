"""Reduce approved timesheets into typed hour totals for a period."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from payslip_engine.calculators.types import ZERO, HourBucket

if TYPE_CHECKING:
    from payslip_engine.models import Timesheet, TimesheetEntry

APPROVED_STATUS = "approved"

# Entry attribute -> HourBucket field
_ENTRY_FIELDS = {
    "regular_hours": "regular",
    "overtime_hours": "overtime",
    "evening_hours": "evening",
    "night_hours": "night",
    "weekend_hours": "weekend",
    "travel_kilometers": "travel_km",
}


def aggregate_hours(
    timesheets: Iterable[Timesheet],
    period_start: date,
    period_end: date,
) -> HourBucket:
    """Sum approved timesheet entries dated within [period_start, period_end].

    Non-approved timesheets contribute nothing. Overlapping timesheets for the
    same date are both counted.

    Raises:
        ValueError: If an in-range entry carries a negative amount
    """
    totals = dict.fromkeys(_ENTRY_FIELDS.values(), ZERO)

    for timesheet in timesheets:
        if timesheet.status != APPROVED_STATUS:
            continue
        for entry in timesheet.entries:
            if not period_start <= entry.work_date <= period_end:
                continue
            for attr, bucket_field in _ENTRY_FIELDS.items():
                totals[bucket_field] += _entry_value(entry, attr)

    return HourBucket(**totals)


def _entry_value(entry: TimesheetEntry, attr: str) -> Decimal:
    value = getattr(entry, attr, None)
    if value is None:
        return ZERO
    value = Decimal(str(value))
    if value < 0:
        raise ValueError(
            f"Timesheet entry {getattr(entry, 'timesheet_entry_id', None)} on "
            f"{entry.work_date} has negative {attr}: {value}"
        )
    return value
