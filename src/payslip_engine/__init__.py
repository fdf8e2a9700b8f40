"""Payroll calculation and payslip generation engine."""

__version__ = "0.1.0"
