"""Payroll period, calculation, payslip and tax table models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payslip_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from payslip_engine.models.company import Company
    from payslip_engine.models.employee import Employee


JSONType = JSON().with_variant(JSONB(), "postgresql")

Money = Numeric(14, 2)
Rate = Numeric(14, 4)
Hours = Numeric(10, 2)


# ===== Tax tables =====


class TaxTableVersion(Base, TimestampMixin):
    """Versioned tax and contribution rates with effective dating.

    payload_json keys mirror TaxTableConfig fields (rates as decimals).
    """

    __tablename__ = "tax_table_version"

    tax_table_version_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    version: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    effective_start: Mapped[date] = mapped_column(Date, nullable=False)
    effective_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    payload_json: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    __table_args__ = (
        CheckConstraint(
            "effective_end IS NULL OR effective_end >= effective_start",
            name="tax_table_version_dates_check",
        ),
    )


# ===== Periods & calculations =====


class PayrollPeriod(Base, TimestampMixin):
    """One payroll run window for a company."""

    __tablename__ = "payroll_period"

    payroll_period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    period_type: Mapped[str] = mapped_column(String, nullable=False, default="monthly")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_gross: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    total_net: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    total_tax: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))

    supersedes_period_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id"),
        nullable=True,
    )
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "period_type IN ('monthly', 'weekly', 'four_weekly')",
            name="payroll_period_type_check",
        ),
        CheckConstraint(
            "status IN ('draft', 'calculated', 'approved', 'paid', 'superseded')",
            name="payroll_period_status_check",
        ),
        CheckConstraint(
            "start_date < end_date AND end_date < payment_date",
            name="payroll_period_dates_check",
        ),
    )

    # Relationships
    company: Mapped[Company] = relationship()
    calculations: Mapped[list[PayrollCalculation]] = relationship(back_populates="period")


class PayrollCalculation(Base, TimestampMixin):
    """One employee's payroll result for one period.

    Exactly one row per (employee_id, payroll_period_id); writes go through
    a keyed upsert so recalculation replaces the row in place.
    """

    __tablename__ = "payroll_calculation"

    payroll_calculation_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    period_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_end_date: Mapped[date] = mapped_column(Date, nullable=False)

    regular_hours: Mapped[Decimal] = mapped_column(Hours, nullable=False, default=Decimal("0"))
    regular_rate: Mapped[Decimal] = mapped_column(Rate, nullable=False, default=Decimal("0"))
    regular_pay: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    overtime_hours: Mapped[Decimal] = mapped_column(Hours, nullable=False, default=Decimal("0"))
    overtime_rate: Mapped[Decimal] = mapped_column(Rate, nullable=False, default=Decimal("0"))
    overtime_pay: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    evening_hours: Mapped[Decimal] = mapped_column(Hours, nullable=False, default=Decimal("0"))
    evening_rate: Mapped[Decimal] = mapped_column(Rate, nullable=False, default=Decimal("0"))
    evening_pay: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    night_hours: Mapped[Decimal] = mapped_column(Hours, nullable=False, default=Decimal("0"))
    night_rate: Mapped[Decimal] = mapped_column(Rate, nullable=False, default=Decimal("0"))
    night_pay: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    weekend_hours: Mapped[Decimal] = mapped_column(Hours, nullable=False, default=Decimal("0"))
    weekend_rate: Mapped[Decimal] = mapped_column(Rate, nullable=False, default=Decimal("0"))
    weekend_pay: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    holiday_hours: Mapped[Decimal] = mapped_column(Hours, nullable=False, default=Decimal("0"))
    holiday_rate: Mapped[Decimal] = mapped_column(Rate, nullable=False, default=Decimal("0"))
    holiday_pay: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))

    travel_kilometers: Mapped[Decimal] = mapped_column(Hours, nullable=False, default=Decimal("0"))
    travel_rate: Mapped[Decimal] = mapped_column(Rate, nullable=False, default=Decimal("0"))
    travel_allowance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    other_earnings: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    gross_pay: Mapped[Decimal] = mapped_column(Money, nullable=False)

    # Taxes and contributions
    income_tax: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    social_security_employee: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    social_security_employer: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    health_insurance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    pension_employee: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    pension_employer: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    unemployment_insurance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    disability_insurance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))

    deductions: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    net_pay: Mapped[Decimal] = mapped_column(Money, nullable=False)

    vacation_accrual: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    ytd_gross: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    ytd_net: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    ytd_tax: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))

    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    calculated_by: Mapped[str | None] = mapped_column(String, nullable=True)

    # Traceability of the rate set in force at calculation time
    tax_table_version: Mapped[str] = mapped_column(String, nullable=False)
    rate_schedule_json: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    inputs_fingerprint: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "payroll_period_id", name="payroll_calculation_employee_period_unique"
        ),
        CheckConstraint(
            "status IN ('draft', 'calculated', 'approved', 'paid')",
            name="payroll_calculation_status_check",
        ),
    )

    # Relationships
    period: Mapped[PayrollPeriod] = relationship(back_populates="calculations")
    employee: Mapped[Employee] = relationship()
    payslip: Mapped[Payslip | None] = relationship(back_populates="calculation", uselist=False)


class Payslip(Base, TimestampMixin):
    """Rendered payslip document reference (one per calculation)."""

    __tablename__ = "payslip"

    payslip_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_calculation_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_calculation.payroll_calculation_id", ondelete="CASCADE"),
        nullable=False,
    )
    period_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    pdf_url: Mapped[str | None] = mapped_column(String, nullable=True)
    pdf_storage_path: Mapped[str | None] = mapped_column(String, nullable=True)
    generated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    generated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    downloaded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    render_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("payroll_calculation_id", name="payslip_one_per_calculation"),
    )

    # Relationships
    calculation: Mapped[PayrollCalculation] = relationship(back_populates="payslip")

    @property
    def has_document(self) -> bool:
        """Whether a usable document reference is stored."""
        return bool(self.pdf_url and self.pdf_storage_path)


# ===== Audit =====


class AuditEvent(Base, TimestampMixin):
    """Audit trail entry."""

    __tablename__ = "audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    actor_id: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    details_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
