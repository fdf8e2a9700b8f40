"""Employee model (owned by the employee directory)."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payslip_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from payslip_engine.models.company import Company
    from payslip_engine.models.timesheet import Timesheet


class Employee(Base, TimestampMixin):
    """Employee record with the salary and tax settings payroll reads."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_number: Mapped[str | None] = mapped_column(String, nullable=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    bsn: Mapped[str | None] = mapped_column(String, nullable=True)
    street: Mapped[str | None] = mapped_column(String, nullable=True)
    house_number: Mapped[str | None] = mapped_column(String, nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String, nullable=True)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    job_title: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Salary settings
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    travel_allowance_per_km: Mapped[Decimal | None] = mapped_column(
        Numeric(8, 4), nullable=True
    )
    holiday_allowance_pct: Mapped[Decimal | None] = mapped_column(
        Numeric(6, 2), nullable=True
    )

    # Tax settings
    tax_table: Mapped[str | None] = mapped_column(String, nullable=True)
    tax_credit: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    pension_contribution_pct: Mapped[Decimal | None] = mapped_column(
        Numeric(6, 2), nullable=True
    )
    pension_employer_contribution_pct: Mapped[Decimal | None] = mapped_column(
        Numeric(6, 2), nullable=True
    )

    # Leave balance snapshot (maintained by leave tracking)
    vacation_days_accrued: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    vacation_days_taken: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'on_leave', 'sick')",
            name="employee_status_check",
        ),
        CheckConstraint(
            "tax_table IS NULL OR tax_table IN ('white', 'green')",
            name="employee_tax_table_check",
        ),
    )

    # Relationships
    company: Mapped[Company] = relationship(back_populates="employees")
    timesheets: Mapped[list[Timesheet]] = relationship(back_populates="employee")

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"
