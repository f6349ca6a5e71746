"""FastAPI application initialization and configuration."""

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from .core.config import Settings, get_settings
from .core.database import Database
from .core.exceptions import (
    ProblemDetailsException,
    generic_exception_handler,
    problem_details_handler,
    validation_exception_handler,
)
from .core.middleware import setup_middleware
from .core.observability import (
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_structured_logging,
    setup_tracing,
)
from .routers import audit, booking, health, inventory, metrics
from .services.booking_service import BookingService
from .services.inventory_ledger import InventoryLedger, utc_now
from .services.inventory_service import InventoryService
from .services.night_audit import NightAuditRunner
from .workers.manager import WorkerManager
from .workers.night_audit_worker import NightAuditWorker

logger = logging.getLogger(__name__)

SERVICE_NAME = "roomledger"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Handles startup and shutdown events for the FastAPI application.
    """
    settings: Settings = app.state.settings
    database: Database = app.state.database

    logger.info(
        "Starting FastAPI application",
        extra={"environment": settings.environment, "debug": settings.debug}
    )

    try:
        setup_tracing(settings, SERVICE_NAME)
        instrument_sqlalchemy(database.engine)
        logger.info("Observability setup completed")

        if settings.create_schema:
            await database.create_all()
            logger.info("Database schema created")

        if settings.enable_workers:
            await app.state.worker_manager.start_all()
            logger.info("Background workers started successfully")
    except Exception as e:
        logger.error(f"Failed to initialize application: {e}")
        raise

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down FastAPI application")

    try:
        await app.state.worker_manager.stop_all()
        await database.dispose()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error(f"Error during application cleanup: {e}")

    logger.info("Application shutdown complete")


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    clock: Callable[[], datetime] = utc_now,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted
        database: Database to use; built from ``settings.database_url`` when omitted
        clock: Source of the current time for timestamps and audit dates

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    settings = settings or get_settings()
    database = database or Database(
        settings.database_url,
        echo=False,
        lock_timeout_seconds=settings.lock_timeout_seconds,
    )

    ledger = InventoryLedger(max_horizon_days=settings.max_horizon_days, clock=clock)
    booking_service = BookingService(database, ledger, clock=clock, cutover_hour=settings.audit_cutover_hour)
    night_audit_runner = NightAuditRunner(
        database,
        booking_service,
        no_show_grace_days=settings.no_show_grace_days,
        stale_after_seconds=settings.audit_stale_after_seconds,
        clock=clock,
    )

    worker_manager = WorkerManager()
    worker_manager.register(
        "night_audit",
        NightAuditWorker(
            night_audit_runner,
            cutover_hour=settings.audit_cutover_hour,
            interval_seconds=settings.audit_interval_seconds,
        ),
    )

    app = FastAPI(
        title="Room Ledger API",
        description="RPC-over-HTTP API for hotel room inventory, reservations and the night audit",
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.ledger = ledger
    app.state.booking_service = booking_service
    app.state.inventory_service = InventoryService(database, ledger, clock=clock)
    app.state.night_audit_runner = night_audit_runner
    app.state.worker_manager = worker_manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "traceparent", "tracestate"],
    )

    setup_middleware(app, enable_logging=True)

    instrument_fastapi(app)

    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get(
        "/health",
        status_code=status.HTTP_200_OK,
        tags=["Health"],
        summary="Health Check",
        description="Check if the service is healthy and responsive",
        response_model=dict,
    )
    async def health_check():
        """
        Health check endpoint that returns service status.

        Returns:
            dict: Health status information
        """
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": "1.0.0",
            "environment": settings.environment,
        }

    @app.get(
        "/ready",
        status_code=status.HTTP_200_OK,
        tags=["Health"],
        summary="Readiness Check",
        description="Check if the service can reach its database",
        response_model=dict,
    )
    async def readiness_check(request: Request):
        """
        Readiness check endpoint that verifies the database connection.

        Returns:
            dict: Readiness status information
        """
        try:
            async with request.app.state.database.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning("Readiness check failed", extra={"error": str(e)})
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "not_ready", "service": SERVICE_NAME, "checks": {"database": "unavailable"}},
            )

        return {
            "status": "ready",
            "service": SERVICE_NAME,
            "checks": {
                "database": "ok",
                "workers": request.app.state.worker_manager.get_worker_status(),
            },
        }

    app.include_router(health.router)
    app.include_router(inventory.router)
    app.include_router(booking.router)
    app.include_router(audit.router)
    app.include_router(metrics.router)

    return app


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    setup_structured_logging(settings)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
