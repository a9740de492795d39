"""NoLSAF Marketplace Backend - Main Application Entry Point."""

import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .core.exceptions import NolsafException
from .core.logging import (
    RequestContextMiddleware,
    get_logger,
    setup_logging,
    shutdown_logging,
)
from .core.ttl_cache import periodic_sweep
from .database import AsyncSessionLocal
from .modules.commons import ErrorResponse

# Import routers
from .modules.auth import account_router, admin_settings_router
from .modules.auth import router as auth_router
from .modules.bookings import customer_router as customer_bookings_router
from .modules.bookings import owner_router as owner_bookings_router
from .modules.cancellations import admin_router as admin_cancellations_router
from .modules.cancellations import customer_router as customer_cancellations_router
from .modules.notifications import router as notifications_router
from .modules.payments import router as payments_router
from .modules.payments import webhook_router as payment_webhooks_router
from .modules.properties import admin_router as admin_properties_router
from .modules.properties import owner_router as owner_properties_router
from .modules.properties import public_router as public_properties_router
from .modules.transport import driver_router as driver_transport_router
from .modules.transport import router as transport_router

logger = get_logger(__name__)


async def seed_initial_admin() -> None:
    """Create the first admin from INIT_ADMIN_* settings when configured."""
    if not (settings.init_admin_email and settings.init_admin_password):
        return
    from .modules.auth.services import create_initial_admin

    async with AsyncSessionLocal() as db:
        await create_initial_admin(
            db,
            email=settings.init_admin_email,
            password=settings.init_admin_password,
            full_name=settings.init_admin_full_name or "Administrator",
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    setup_logging(settings)
    logger.info("Starting NoLSAF application...")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Debug mode: {settings.app_debug}")
    await seed_initial_admin()
    sweeper = asyncio.create_task(periodic_sweep(settings.cache_sweep_interval_seconds))
    yield
    # Shutdown
    logger.info("Shutting down NoLSAF application...")
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    shutdown_logging()


# Create FastAPI application
app = FastAPI(
    title=settings.api_title,
    description="Accommodation and transport marketplace",
    version=settings.api_version,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
    openapi_url="/api/openapi.json" if settings.app_debug else None,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request id and access logging
app.add_middleware(RequestContextMiddleware)


# Global exception handlers
@app.exception_handler(NolsafException)
async def nolsaf_exception_handler(request: Request, exc: NolsafException):
    """Handle NoLSAF-specific exceptions."""
    status_code = getattr(exc, "status_code", 400)
    if status_code >= 500:
        logger.warning(f"{type(exc).__name__}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse.body(exc.message, exc.data, exc.details),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Wrap framework HTTP errors (401/403 from dependencies, 404 routes) in the envelope."""
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.body(message),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request body or parameter validation failures are 400s."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse.body("Invalid request", data={"errors": exc.errors()}),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse.body(
            "Internal server error" if not settings.app_debug else str(exc)
        ),
    )


# Health check endpoint
@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.api_version,
        "env": settings.app_env,
    }


# Register routers with /api prefix
API_PREFIX = settings.api_prefix

# Auth and account security
app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(account_router, prefix=API_PREFIX)
app.include_router(admin_settings_router, prefix=API_PREFIX)

# Properties
app.include_router(owner_properties_router, prefix=API_PREFIX)
app.include_router(public_properties_router, prefix=API_PREFIX)
app.include_router(admin_properties_router, prefix=API_PREFIX)

# Bookings and check-in
app.include_router(customer_bookings_router, prefix=API_PREFIX)
app.include_router(owner_bookings_router, prefix=API_PREFIX)

# Cancellations
app.include_router(customer_cancellations_router, prefix=API_PREFIX)
app.include_router(admin_cancellations_router, prefix=API_PREFIX)

# Payments
app.include_router(payments_router, prefix=API_PREFIX)
app.include_router(payment_webhooks_router, prefix=API_PREFIX)

# Notifications
app.include_router(notifications_router, prefix=API_PREFIX)

# Transport
app.include_router(transport_router, prefix=API_PREFIX)
app.include_router(driver_transport_router, prefix=API_PREFIX)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "nolsaf_backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_debug,
    )
