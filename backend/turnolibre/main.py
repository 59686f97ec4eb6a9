"""
TurnoLibre API - Main Application Entry Point

Court-booking backend:
- Weekly slot grid generated from each court's schedule, folded with bookings
- Emailed one-time-code holds promoted to bookings
- Idempotent payment webhook reconciliation
- Background sweeps expiring holds and featured promotions
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from turnolibre.core.config import get_settings
from turnolibre.core.exceptions import DomainError, InternalError
from turnolibre.core.logging import setup_logging, get_logger
from turnolibre.core.metrics import metrics_endpoint
from turnolibre.api.router import api_router
from turnolibre.api.middleware import RequestLoggingMiddleware
from turnolibre.services.cache_service import get_redis, close_redis, get_cache_stats
from turnolibre.services.sweeper import sweeper

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    if settings.SCHEDULER_ENABLED:
        await sweeper.start()

    yield

    await sweeper.stop()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Court booking API with code-confirmed holds and payment reconciliation",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(api_router)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if isinstance(exc, InternalError):
        logger.error("internal_error", error=exc.message, **exc.details)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.public_message(), "code": exc.code},
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
        "scheduler": "running" if sweeper.running else "stopped",
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
