"""FastAPI main application module."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ... import __version__
from ...domain.exceptions import BookingEngineError
from ...infrastructure.logging import get_logger, setup_logging_from_env
from ...infrastructure.services import initialize_services, shutdown_services
from .config import get_settings
from .middleware.logging import RequestResponseLoggingMiddleware
from .routes import appointments, bookings, health, organizations

logger = get_logger(__name__)

# Domain error code -> HTTP status
ERROR_STATUS_CODES = {
    "not_found": 404,
    "not_bookable": 403,
    "link_expired": 403,
    "link_capacity_reached": 403,
    "permission_denied": 403,
    "invalid_slot_count": 400,
    "invalid_provider_or_resource": 400,
    "invalid_appointment": 400,
    "capacity_exceeded": 409,
    "no_provider_available": 409,
    "policy_violation": 409,
    "concurrency_conflict": 503,
    "storage_unavailable": 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info("Starting Appointment Booking Engine API")
    await initialize_services()

    yield

    logger.info("Shutting down Appointment Booking Engine API")
    await shutdown_services()


def add_exception_handlers(app: FastAPI) -> None:
    """Add custom exception handlers to the FastAPI application."""

    @app.exception_handler(BookingEngineError)
    async def booking_engine_error_handler(request: Request, exc: BookingEngineError):
        """Map domain errors to HTTP responses."""
        status_code = ERROR_STATUS_CODES.get(exc.code, 500)
        if status_code >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        else:
            logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")
        headers = {"Retry-After": "1"} if exc.code == "concurrency_conflict" else None
        return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        """Handle validation errors from business logic."""
        logger.warning(f"Validation error on {request.url.path}: {str(exc)}")
        return JSONResponse(
            status_code=400,
            content={
                "detail": str(exc),
                "type": "validation_error",
                "context": {}
            }
        )


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Appointment Booking Engine",
        description="Slot availability and booking admission for multi-tenant appointment scheduling",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    add_exception_handlers(app)

    app.add_middleware(RequestResponseLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=settings.allowed_methods,
        allow_headers=settings.allowed_headers,
    )

    app.include_router(health.router, tags=["health"])
    app.include_router(
        organizations.router,
        prefix=f"{settings.api_prefix}/organizations",
        tags=["organizations"]
    )
    app.include_router(
        appointments.router,
        prefix=f"{settings.api_prefix}/appointments",
        tags=["appointments"]
    )
    app.include_router(
        bookings.router,
        prefix=f"{settings.api_prefix}/bookings",
        tags=["bookings"]
    )

    return app


setup_logging_from_env()

# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_config=None)
