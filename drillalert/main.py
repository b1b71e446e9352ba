"""
FastAPI application entry point.

Run with:
    uvicorn drillalert.main:app --reload --port 3000

Or from the project root:
    python -m uvicorn drillalert.main:app --reload
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from drillalert.core.config import settings
from drillalert.core.database import async_session_factory, close_db, engine, init_db
from drillalert.core.errors import register_error_handlers
from drillalert.core.health import HealthStatus, run_health_check
from drillalert.core.logging_config import get_logger, setup_logging
from drillalert.core.middleware import RequestLoggingMiddleware
from drillalert.services import Services, build_services, get_services

# ── API routers ──
from drillalert.api.v1.directory import router as directory_router
from drillalert.api.v1.drills import router as drills_router
from drillalert.api.v1.realtime import router as realtime_router

# ── Initialise logging ──
setup_logging()
logger = get_logger(__name__)


# ── Application lifespan (startup / shutdown) ──

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, wire the drill core, and tear it down on exit."""
    logger.info(
        "Starting %s v%s [%s]",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
    )
    await init_db(engine)
    services = build_services(async_session_factory, config=settings, engine=engine)
    app.state.services = services
    if not settings.twilio_configured:
        logger.warning("Twilio credentials not set, parent SMS will be simulated")
    logger.info("SMS bridge running in %s mode", services.bridge.mode)

    yield

    logger.info("Shutting down %s", settings.APP_NAME)
    await services.close()
    await close_db(engine)


# ── Create application ──

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "School emergency drill alerts. Teachers start drills and alerts, "
        "connected students and staff dashboards are notified live over "
        "WebSocket, parents receive SMS, and students acknowledge they are "
        "safe so staff can follow the response report."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── Middleware stack (outermost first) ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS if not settings.CORS_ALLOW_ALL else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# ── Error handlers ──
register_error_handlers(app)

# ── Register routers ──
app.include_router(directory_router)
app.include_router(drills_router)
app.include_router(realtime_router)


# ── Root & health endpoints ──

@app.get("/", tags=["root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "modules": [
            "directory",
            "drills",
            "alerts-sms",
            "realtime",
        ],
        "docs": "/docs",
        "websocket": "/ws",
    }


@app.get("/health", tags=["health"])
async def health_check(services: Services = Depends(get_services)):
    """Deep health probe — database, SMS bridge, live sessions."""
    report = await run_health_check(services)
    return report.to_dict()


@app.get("/health/live", tags=["health"])
async def liveness():
    """Kubernetes liveness probe — is the process alive?"""
    return {"status": "alive"}


@app.get("/health/ready", tags=["health"])
async def readiness(services: Services = Depends(get_services)):
    """Kubernetes readiness probe — can we serve traffic?"""
    report = await run_health_check(services)
    if report.status == HealthStatus.UNHEALTHY:
        return JSONResponse(status_code=503, content=report.to_dict())
    return report.to_dict()
