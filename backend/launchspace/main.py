"""Launch Space Backend -- FastAPI Application Entry Point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from launchspace.api.v1.router import api_v1_router
from launchspace.config import settings
from launchspace.core.exceptions import LaunchSpaceException, ValidationError
from launchspace.db.session import async_session_factory, engine
from launchspace.models import Base
from launchspace.scheduler import CompetitionScheduler
from launchspace.schemas import ErrorDetail, ErrorResponse
from launchspace.services.cache_service import get_cache_service

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.DEBUG else logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[CompetitionScheduler] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    global scheduler

    # Startup
    logger.info("Starting Launch Space API server...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables verified/created")
    except SQLAlchemyError as e:
        logger.error(f"Database init failed: {e}", exc_info=True)

    # Start competition scheduler (only in non-test environments)
    if settings.ENVIRONMENT != "test":
        scheduler = CompetitionScheduler(async_session_factory)
        scheduler.start()
        scheduler.add_lifecycle_job()
        try:
            summary = await scheduler.run_lifecycle()
            logger.info(f"Startup lifecycle run: {len(summary['created'])} weeks created")
        except SQLAlchemyError as e:
            logger.error(f"Startup lifecycle run failed: {e}", exc_info=True)
    else:
        logger.info("Scheduler disabled (test environment)")

    cache = get_cache_service()
    if not cache.enabled:
        logger.info("Redis cache disabled")
    elif await cache.health_check():
        logger.info("Redis cache connected successfully")
    else:
        logger.warning("Redis cache connection failed (will operate without caching)")

    yield

    # Shutdown
    logger.info("Shutting down Launch Space API server...")

    if scheduler:
        scheduler.stop()

    await get_cache_service().close()


app = FastAPI(
    title="Launch Space API",
    description="Weekly launch competitions for AI apps",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL, "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, detail: ErrorDetail) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=detail).model_dump(),
    )


@app.exception_handler(LaunchSpaceException)
async def launchspace_exception_handler(request: Request, exc: LaunchSpaceException):
    errors = exc.errors if isinstance(exc, ValidationError) else []
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return _error(exc.status_code, ErrorDetail(code=exc.code, message=exc.message, errors=errors))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body") or None,
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    return _error(
        400,
        ErrorDetail(code=ValidationError.code, message="Request failed validation", errors=errors),
    )


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Storage error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return _error(500, ErrorDetail(code="STORAGE_ERROR", message="A storage error occurred"))


# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Launch Space API",
        "version": "0.1.0",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
