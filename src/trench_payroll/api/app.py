"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trench_payroll import __version__
from trench_payroll.api.routes import (
    corrections_router,
    health_router,
    payment_periods_router,
    rates_router,
    reports_router,
    work_logs_router,
)
from trench_payroll.config import configure_logging, get_settings
from trench_payroll.database import create_schema, dispose_db, init_db
from trench_payroll.errors import PayrollError

logger = logging.getLogger(__name__)

# Error code -> HTTP status. Codes not listed fall back to their base class.
STATUS_BY_CODE: dict[str, int] = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "INVALID_INPUT": status.HTTP_400_BAD_REQUEST,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "INVALID_TRANSITION": status.HTTP_409_CONFLICT,
    "PERIOD_LOCKED": status.HTTP_409_CONFLICT,
    "ALREADY_REVIEWED": status.HTTP_409_CONFLICT,
    "HISTORICAL_EDIT_DENIED": status.HTTP_403_FORBIDDEN,
    "STATE_ERROR": status.HTTP_409_CONFLICT,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "RATE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "CONCURRENT_MODIFICATION": status.HTTP_409_CONFLICT,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings = get_settings()
    configure_logging(settings.log_level)
    init_db(settings.database_url)
    if settings.create_schema:
        await create_schema()
    logger.info("Trench payroll API %s starting", __version__)
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Trench Payroll API",
        description="Work logs, payment periods and corrections for field labour crews",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PayrollError)
    async def payroll_error_handler(request: Request, exc: PayrollError) -> JSONResponse:
        """Map core errors to their stable code and an HTTP status."""
        return JSONResponse(
            status_code=STATUS_BY_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST),
            content=exc.to_dict(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    app.include_router(health_router)
    app.include_router(work_logs_router, prefix="/api/v1")
    app.include_router(payment_periods_router, prefix="/api/v1")
    app.include_router(corrections_router, prefix="/api/v1")
    app.include_router(rates_router, prefix="/api/v1")
    app.include_router(reports_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
