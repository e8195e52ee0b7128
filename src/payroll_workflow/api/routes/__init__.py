"""API routes."""

from payroll_workflow.api.routes.approvals import router as approvals_router
from payroll_workflow.api.routes.attendance import router as attendance_router
from payroll_workflow.api.routes.health import router as health_router
from payroll_workflow.api.routes.payroll_periods import router as payroll_periods_router
from payroll_workflow.api.routes.payslips import router as payslips_router
from payroll_workflow.api.routes.tax_settings import router as tax_settings_router

__all__ = [
    "approvals_router",
    "attendance_router",
    "health_router",
    "payroll_periods_router",
    "payslips_router",
    "tax_settings_router",
]
