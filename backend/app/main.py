"""
FastAPI Application Entry Point.

This is the main application file for the Pharma Delivery Tracker backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.core.background import drain
from backend.app.core.observability import ObservabilityMiddleware
from backend.app.db.session import engine, Base, AsyncSessionLocal
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from backend.app.services.container import build_services

# Import models to ensure they are registered with Base
from backend.app.models.base_location import BaseLocation
from backend.app.models.user import AppUser, AppUserRole
from backend.app.models.customer import Customer
from backend.app.models.trip import Trip
from backend.app.models.doc import Doc
from backend.app.models.signature import Signature
from backend.app.models.location_heartbeat import LocationHeartbeat
from backend.app.models.doc_tracking_access import DocTrackingAccess
from backend.app.models.setting import Setting
from backend.app.models.audit_log import AuditLog
from backend.app.models.api_outbound_log import ApiOutboundLog

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Loads the settings cache.
    3. Waits for outstanding background notifications on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        await app.state.services.settings_cache.load(session)

    logger.info("%s started (%s)", settings.app_name, settings.environment)
    yield

    await drain()
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Pharmaceutical delivery tracking: scan, trip assignment, delivery and public tracking",
    lifespan=lifespan,
)

app.state.services = build_services()

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to the Pharma Delivery Tracker API",
        "docs": "/docs",
        "health": "/health",
    }
