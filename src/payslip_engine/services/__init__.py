"""Payslip engine services."""

from payslip_engine.services.calculation_store import CalculationNotFoundError, CalculationStore
from payslip_engine.services.directory import (
    EmployeeDirectory,
    SqlEmployeeDirectory,
    SqlTimesheetStore,
    TimesheetStore,
)
from payslip_engine.services.period_manager import (
    InvalidPeriodError,
    PayrollPeriodManager,
    PeriodConfig,
    PeriodNotFoundError,
    PeriodSummary,
)
from payslip_engine.services.state_machine import (
    InvalidTransitionError,
    PayrollPeriodStateMachine,
    PeriodStatus,
)

__all__ = [
    "CalculationNotFoundError",
    "CalculationStore",
    "EmployeeDirectory",
    "InvalidPeriodError",
    "InvalidTransitionError",
    "PayrollPeriodManager",
    "PayrollPeriodStateMachine",
    "PeriodConfig",
    "PeriodNotFoundError",
    "PeriodStatus",
    "PeriodSummary",
    "SqlEmployeeDirectory",
    "SqlTimesheetStore",
    "TimesheetStore",
]
