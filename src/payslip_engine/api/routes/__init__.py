"""API routes."""

from payslip_engine.api.routes.health import router as health_router
from payslip_engine.api.routes.payroll_periods import router as payroll_periods_router
from payslip_engine.api.routes.payslips import router as payslips_router

__all__ = ["health_router", "payroll_periods_router", "payslips_router"]
