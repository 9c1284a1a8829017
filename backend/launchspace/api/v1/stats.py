"""Platform statistics endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.dependencies import get_cache, get_db
from launchspace.schemas import ApiResponse, PlatformStats
from launchspace.services import RankingService
from launchspace.services.cache_service import CacheService

router = APIRouter()

STATS_CACHE_KEY = "stats:platform"


@router.get("", response_model=ApiResponse)
async def platform_stats(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Site-wide counters. Cached for 5 minutes."""
    cached = await cache.get(STATS_CACHE_KEY)
    if cached:
        return ApiResponse.model_validate_json(cached)

    stats = await RankingService(db).platform_stats()
    response = ApiResponse(data=PlatformStats(**stats))
    await cache.set(STATS_CACHE_KEY, response.model_dump_json(), ttl=300)
    return response
