"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from statutory_payroll import __version__
from statutory_payroll.api.routes import (
    bonus_records_router,
    gratuity_records_router,
    health_router,
)
from statutory_payroll.config import Settings, get_settings
from statutory_payroll.database import Database
from statutory_payroll.errors import (
    ConstraintViolationError,
    InvalidTransitionError,
    RecordNotFoundError,
    StatutoryPayrollError,
    ValidationError,
)
from statutory_payroll.events import EventEmitter
from statutory_payroll.services.lifecycle import BonusLifecycle, GratuityLifecycle

logger = logging.getLogger(__name__)

# Most specific first
_ERROR_STATUS: list[tuple[type[StatutoryPayrollError], int]] = [
    (ValidationError, 422),
    (InvalidTransitionError, 409),
    (RecordNotFoundError, 404),
    (ConstraintViolationError, 503),  # retryable
]


def status_for_error(exc: StatutoryPayrollError) -> int:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    emitter: EventEmitter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    A ``database`` passed in stays owned by the caller; otherwise the app
    creates one from settings and disposes it at shutdown.
    """
    settings = settings or get_settings()
    owns_database = database is None
    database = database or Database.from_settings(settings)
    emitter = emitter or EventEmitter()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        database.connect()
        yield
        if owns_database:
            await database.dispose()

    app = FastAPI(
        title="Statutory Payroll API",
        description="Bonus and gratuity records under the Payment of Bonus and Gratuity Acts",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.database = database
    app.state.emitter = emitter
    app.state.bonus_lifecycle = BonusLifecycle.create(database, settings, emitter)
    app.state.gratuity_lifecycle = GratuityLifecycle.create(database, settings, emitter)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(StatutoryPayrollError)
    async def domain_exception_handler(
        request: Request, exc: StatutoryPayrollError
    ) -> JSONResponse:
        """Map domain errors to HTTP status codes."""
        return JSONResponse(
            status_code=status_for_error(exc),
            content={"detail": str(exc), "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(bonus_records_router, prefix="/api/v1")
    app.include_router(gratuity_records_router, prefix="/api/v1")

    return app
