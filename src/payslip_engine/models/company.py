"""Company and company-level rate schedule models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payslip_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from payslip_engine.models.employee import Employee


class Company(Base, TimestampMixin):
    """Employing company (owned by the company directory)."""

    __tablename__ = "company"

    company_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    owner_id: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    kvk_number: Mapped[str | None] = mapped_column(String, nullable=True)
    tax_number: Mapped[str | None] = mapped_column(String, nullable=True)
    street: Mapped[str | None] = mapped_column(String, nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String, nullable=True)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    country: Mapped[str] = mapped_column(String, nullable=False, default="NL")
    logo_url: Mapped[str | None] = mapped_column(String, nullable=True)

    # Payroll defaults applied when the employee record is silent
    travel_allowance_per_km: Mapped[Decimal | None] = mapped_column(
        Numeric(8, 4), nullable=True
    )
    holiday_allowance_pct: Mapped[Decimal | None] = mapped_column(
        Numeric(6, 2), nullable=True
    )
    pension_contribution_pct: Mapped[Decimal | None] = mapped_column(
        Numeric(6, 2), nullable=True
    )

    # Relationships
    employees: Mapped[list[Employee]] = relationship(back_populates="company")
    rate_schedules: Mapped[list[HourlyRateSchedule]] = relationship(
        back_populates="company"
    )


class HourlyRateSchedule(Base, TimestampMixin):
    """Company hourly rate schedule, effective from a date.

    Multipliers are percentages of the base rate (100 = no differential).
    Any column left NULL falls back to the built-in default schedule.
    """

    __tablename__ = "hourly_rate_schedule"

    hourly_rate_schedule_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    job_title: Mapped[str | None] = mapped_column(String, nullable=True)
    cao_name: Mapped[str | None] = mapped_column(String, nullable=True)
    base_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    overtime_multiplier: Mapped[Decimal | None] = mapped_column(Numeric(7, 2), nullable=True)
    evening_multiplier: Mapped[Decimal | None] = mapped_column(Numeric(7, 2), nullable=True)
    night_multiplier: Mapped[Decimal | None] = mapped_column(Numeric(7, 2), nullable=True)
    weekend_multiplier: Mapped[Decimal | None] = mapped_column(Numeric(7, 2), nullable=True)
    holiday_multiplier: Mapped[Decimal | None] = mapped_column(Numeric(7, 2), nullable=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Relationships
    company: Mapped[Company] = relationship(back_populates="rate_schedules")
