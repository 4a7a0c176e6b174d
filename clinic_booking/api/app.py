"""FastAPI application for the clinic booking service."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinic_booking import __version__
from clinic_booking.api.middleware import APIKeyMiddleware, RequestLoggingMiddleware
from clinic_booking.api.routes import appointments, booking, catalog, health, staff
from clinic_booking.config import get_settings
from clinic_booking.core.database import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting clinic booking API")

    await init_db()

    logger.info("Clinic booking API started successfully")

    yield

    logger.info("Shutting down clinic booking API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Clinic Booking API",
        description="Appointment availability and conflict-free booking for a clinic",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestLoggingMiddleware)

    if settings.api_key:
        app.add_middleware(APIKeyMiddleware, api_key=settings.api_key)

    app.include_router(health.router, tags=["health"])
    app.include_router(catalog.router, prefix="/api/v1", tags=["catalog"])
    app.include_router(booking.router, prefix="/api/v1", tags=["booking"])
    app.include_router(appointments.router, prefix="/api/v1", tags=["appointments"])
    app.include_router(staff.router, prefix="/api/v1", tags=["staff"])

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.debug_mode else None,
            },
        )

    return app
