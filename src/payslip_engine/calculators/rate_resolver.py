"""Rate schedule resolution with company and built-in fallbacks."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payslip_engine.calculators.types import (
    DEFAULT_RATE_SCHEDULE,
    DEFAULT_TRAVEL_RATE,
    RateSchedule,
)
from payslip_engine.models import HourlyRateSchedule

logger = logging.getLogger(__name__)


class RateResolver:
    """Resolves the rate schedule applied to one employee.

    Resolution order:
    1. base_rate: employee hourly rate, else company schedule, else default
    2. each multiplier: company schedule, else default
    3. travel rate per km: employee, else company, else default

    Never raises; a missing schedule falls through to the defaults.
    """

    def __init__(
        self,
        default: RateSchedule = DEFAULT_RATE_SCHEDULE,
        default_travel_rate: Decimal = DEFAULT_TRAVEL_RATE,
    ):
        self.default = default
        self.default_travel_rate = default_travel_rate

    def resolve(
        self,
        employee_hourly_rate: Decimal | None,
        company_schedule: HourlyRateSchedule | None = None,
    ) -> RateSchedule:
        """Resolve the schedule for an employee.

        An hourly rate of 0 counts as unset.
        """
        if employee_hourly_rate:
            base_rate = Decimal(employee_hourly_rate)
        elif company_schedule is not None and company_schedule.base_rate:
            base_rate = Decimal(company_schedule.base_rate)
        else:
            logger.warning(
                "No hourly rate configured, using default base rate %s",
                self.default.base_rate,
            )
            base_rate = self.default.base_rate

        multipliers: dict[str, Decimal] = {}
        for name in RateSchedule.MULTIPLIER_FIELDS:
            value = getattr(company_schedule, name, None) if company_schedule else None
            multipliers[name] = Decimal(value) if value is not None else getattr(self.default, name)

        return RateSchedule(base_rate=base_rate, **multipliers)

    def resolve_travel_rate(
        self,
        employee_rate: Decimal | None,
        company_rate: Decimal | None = None,
    ) -> Decimal:
        """Resolve the travel reimbursement per kilometer."""
        if employee_rate is not None:
            return Decimal(employee_rate)
        if company_rate is not None:
            return Decimal(company_rate)
        return self.default_travel_rate


class CompanyRateLookup:
    """Loads the company rate schedule in force on a date.

    A schedule for the employee's job title beats a company-wide one
    (job_title NULL); a schedule for a different title is skipped. Among
    equal matches the newest effective_date wins.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_schedule(
        self,
        company_id: UUID,
        as_of_date: date,
        job_title: str | None = None,
    ) -> HourlyRateSchedule | None:
        result = await self.session.execute(
            select(HourlyRateSchedule)
            .where(
                HourlyRateSchedule.company_id == company_id,
                HourlyRateSchedule.effective_date <= as_of_date,
            )
            .order_by(HourlyRateSchedule.effective_date.desc())
        )
        schedules = list(result.scalars().all())

        best: HourlyRateSchedule | None = None
        best_score = -1
        for schedule in schedules:
            if schedule.job_title is None:
                score = 0
            elif job_title is not None and schedule.job_title == job_title:
                score = 1
            else:
                continue
            # Newest first, so only a strictly better match replaces
            if score > best_score:
                best = schedule
                best_score = score

        if best is None:
            logger.debug("No rate schedule for company %s on %s", company_id, as_of_date)
        return best
