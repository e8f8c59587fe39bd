"""
FastAPI application entry point.

The host application (mobile shell, sensor bridge, settings screen)
drives the safety pipeline through this API.

Run with:
    uvicorn backend.app.main:app --reload --port 8000
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from backend.app.core.config import settings
from backend.app.core.logging_config import setup_logging, get_logger
from backend.app.core.errors import register_error_handlers
from backend.app.core.health import HealthStatus, run_health_check
from backend.app.safety.monitor import build_monitor

# ── API routers ──
from backend.app.api.v1.safety import router as safety_router
from backend.app.api.v1.contacts import router as contacts_router
from backend.app.api.v1.settings import router as settings_router

# ── Initialise logging ──
setup_logging()
logger = get_logger(__name__)


# ── Application lifespan (startup / shutdown) ──

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the monitor on startup; release sampler, timer and transport on shutdown."""
    logger.info(
        "Starting %s v%s [%s] (mail provider: %s)",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
        settings.MAIL_PROVIDER,
    )
    app.state.monitor = build_monitor(settings)
    yield
    await app.state.monitor.aclose()
    logger.info("Shutting down %s", settings.APP_NAME)


# ── Create application ──

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Personal safety companion. Detects a sudden shake from pushed "
        "accelerometer samples, runs a cancellable countdown and, unless "
        "cancelled, emails the user's location to their emergency contacts."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── Error handlers ──
register_error_handlers(app)

# ── Register routers ──
app.include_router(safety_router)
app.include_router(contacts_router)
app.include_router(settings_router)


# ── Root & health endpoints ──

@app.get("/", tags=["root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "docs": "/docs",
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Deep health probe — checks all subsystems."""
    report = await run_health_check(app.state.monitor)
    return report.to_dict()


@app.get("/health/live", tags=["health"])
async def liveness():
    return {"status": "alive"}


@app.get("/health/ready", tags=["health"])
async def readiness():
    """Not ready when an alert could not be sent at all."""
    report = await run_health_check(app.state.monitor)
    if report.status is HealthStatus.UNHEALTHY:
        return JSONResponse(status_code=503, content=report.to_dict())
    return report.to_dict()
