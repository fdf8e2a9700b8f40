"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Payroll period schemas
# ============================================================================


class PayrollPeriodCreate(BaseModel):
    """Schema for creating a payroll period.

    Either give explicit dates or a year/month for a standard monthly period.
    """

    company_id: UUID
    period_type: str = Field(default="monthly", pattern="^(monthly|weekly|four_weekly)$")
    start_date: date | None = None
    end_date: date | None = None
    payment_date: date | None = None
    year: int | None = Field(default=None, ge=1900, le=9999)
    month: int | None = Field(default=None, ge=1, le=12)


class PayrollPeriodResponse(BaseModel):
    """Schema for payroll period response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    company_id: UUID
    period_type: str
    start_date: date
    end_date: date
    payment_date: date
    status: str
    employee_count: int
    total_gross: Decimal
    total_net: Decimal
    total_tax: Decimal
    supersedes_period_id: UUID | None = None
    created_by: str | None = None
    calculated_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    paid_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class PayrollPeriodListResponse(BaseModel):
    items: list[PayrollPeriodResponse]
    total: int


class EmployeeFailureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    error: str


class PeriodSummaryResponse(BaseModel):
    """Schema for a calculation run summary."""

    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    status: str
    employee_count: int
    total_gross: Decimal
    total_net: Decimal
    total_tax: Decimal
    calculated: list[UUID]
    skipped: list[UUID]
    failed: list[EmployeeFailureResponse]
    payslips_generated: int
    payslip_failures: list[UUID]


class SupersedeResponse(BaseModel):
    superseded_period_id: UUID
    payroll_period_id: UUID


# ============================================================================
# Calculation schemas
# ============================================================================


class PayrollCalculationResponse(BaseModel):
    """Schema for payroll calculation response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_calculation_id: UUID
    employee_id: UUID
    company_id: UUID
    payroll_period_id: UUID
    period_start_date: date
    period_end_date: date

    regular_hours: Decimal
    regular_rate: Decimal
    regular_pay: Decimal
    overtime_hours: Decimal
    overtime_rate: Decimal
    overtime_pay: Decimal
    evening_hours: Decimal
    evening_rate: Decimal
    evening_pay: Decimal
    night_hours: Decimal
    night_rate: Decimal
    night_pay: Decimal
    weekend_hours: Decimal
    weekend_rate: Decimal
    weekend_pay: Decimal
    holiday_hours: Decimal
    holiday_rate: Decimal
    holiday_pay: Decimal
    travel_kilometers: Decimal
    travel_rate: Decimal
    travel_allowance: Decimal
    other_earnings: list[dict[str, Any]]

    gross_pay: Decimal
    income_tax: Decimal
    social_security_employee: Decimal
    social_security_employer: Decimal
    health_insurance: Decimal
    pension_employee: Decimal
    pension_employer: Decimal
    unemployment_insurance: Decimal
    disability_insurance: Decimal
    deductions: list[dict[str, Any]]
    net_pay: Decimal

    vacation_accrual: Decimal
    ytd_gross: Decimal
    ytd_net: Decimal
    ytd_tax: Decimal

    status: str
    calculated_at: datetime
    calculated_by: str | None = None
    tax_table_version: str
    inputs_fingerprint: str


class PayrollCalculationListResponse(BaseModel):
    items: list[PayrollCalculationResponse]
    total: int


# ============================================================================
# Payslip schemas
# ============================================================================


class PayslipResponse(BaseModel):
    """Schema for payslip record response."""

    model_config = ConfigDict(from_attributes=True)

    payslip_id: UUID
    employee_id: UUID
    company_id: UUID
    payroll_period_id: UUID
    payroll_calculation_id: UUID
    period_start_date: date
    period_end_date: date
    payment_date: date
    pdf_url: str | None = None
    pdf_storage_path: str | None = None
    generated_at: datetime | None = None
    generated_by: str | None = None
    downloaded_at: datetime | None = None
    render_error: str | None = None


class PayslipListResponse(BaseModel):
    items: list[PayslipResponse]
    total: int


class PayslipLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    description: str
    amount: Decimal
    quantity: Decimal | None = None
    rate: Decimal | None = None


class PayslipSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    gross_pay: Decimal
    total_deductions: Decimal
    total_taxes: Decimal
    income_tax: Decimal
    net_pay: Decimal
    ytd_gross: Decimal
    ytd_income_tax: Decimal
    ytd_net: Decimal


class PayslipViewResponse(BaseModel):
    """Structured payslip content (what the document renders)."""

    model_config = ConfigDict(from_attributes=True)

    company: dict[str, Any]
    employee: dict[str, Any]
    period: dict[str, Any]
    earnings: list[PayslipLineResponse]
    deductions: list[PayslipLineResponse]
    taxes: list[PayslipLineResponse]
    summary: PayslipSummaryResponse
    leave: dict[str, Any]
    pension: dict[str, Any]


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
