"""API routes."""

from trench_payroll.api.routes.corrections import router as corrections_router
from trench_payroll.api.routes.health import router as health_router
from trench_payroll.api.routes.payment_periods import router as payment_periods_router
from trench_payroll.api.routes.rates import router as rates_router
from trench_payroll.api.routes.reports import router as reports_router
from trench_payroll.api.routes.work_logs import router as work_logs_router

__all__ = [
    "corrections_router",
    "health_router",
    "payment_periods_router",
    "rates_router",
    "reports_router",
    "work_logs_router",
]
