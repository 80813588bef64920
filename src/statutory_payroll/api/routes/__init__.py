"""API routes."""

from statutory_payroll.api.routes.bonus_records import router as bonus_records_router
from statutory_payroll.api.routes.gratuity_records import router as gratuity_records_router
from statutory_payroll.api.routes.health import router as health_router

__all__ = ["bonus_records_router", "gratuity_records_router", "health_router"]
