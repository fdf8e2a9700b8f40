"""ORM models."""

from payslip_engine.models.base import Base, TimestampMixin
from payslip_engine.models.company import Company, HourlyRateSchedule
from payslip_engine.models.employee import Employee
from payslip_engine.models.payroll import (
    AuditEvent,
    PayrollCalculation,
    PayrollPeriod,
    Payslip,
    TaxTableVersion,
)
from payslip_engine.models.timesheet import Timesheet, TimesheetEntry

__all__ = [
    "AuditEvent",
    "Base",
    "Company",
    "Employee",
    "HourlyRateSchedule",
    "PayrollCalculation",
    "PayrollPeriod",
    "Payslip",
    "TaxTableVersion",
    "TimestampMixin",
    "Timesheet",
    "TimesheetEntry",
]
