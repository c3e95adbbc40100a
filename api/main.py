
"""
FastAPI application initialization
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.middleware import RequestContextMiddleware
from api.routes import health, ingestion, packages
from core.config import settings
from core.exceptions import IngestionError
from core.logging import setup_logging
from ingestion.scheduler import IngestionScheduler
import logging

setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown"""
    logger.info("Starting package stats ingestion API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    app.state.http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)

    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = IngestionScheduler()
        scheduler.start()

    try:
        yield
    finally:
        logger.info("Shutting down package stats ingestion API")
        if scheduler is not None:
            scheduler.stop()
        await app.state.http_client.aclose()


# Create FastAPI app
app = FastAPI(
    title="Package Download Stats API",
    description="Ingestion and history reconciliation for package download statistics",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(ingestion.router)
app.include_router(packages.router)


@app.exception_handler(IngestionError)
async def ingestion_error_handler(request: Request, exc: IngestionError):
    """Errors escaping a route (e.g. missing configuration) become {error}"""
    logger.error(f"Unhandled ingestion error: {exc}", extra={"error_context": exc.to_dict()})
    return JSONResponse(status_code=500, content={"error": exc.message})


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Package Download Stats API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "ingestion": "/ingestion/run",
            "packages": "/packages"
        }
    }
