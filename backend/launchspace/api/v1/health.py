"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.config import settings
from launchspace.db.utils import check_database_health
from launchspace.dependencies import get_cache, get_db
from launchspace.schemas import HealthCheckResponse
from launchspace.services.cache_service import CacheService

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Return service health status.

    The database must answer for the service to be "ok". Redis is optional:
    when caching is disabled it reports "disabled" and does not degrade
    the overall status.
    """
    services = {}

    db_health = await check_database_health(db)
    db_status = "ok" if db_health["healthy"] else f"error: {db_health.get('error')}"
    services["database"] = db_status

    if cache.enabled:
        cache_status = "ok" if await cache.health_check() else "error: ping failed"
    else:
        cache_status = "disabled"
    services["redis"] = cache_status

    overall_status = "ok" if all(s in ("ok", "disabled") for s in services.values()) else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        environment=settings.ENVIRONMENT,
        database=db_status,
        cache=cache_status,
        services=services,
    )
