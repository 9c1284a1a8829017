"""Scheduler-triggered endpoints, guarded by CRON_SECRET."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.dependencies import get_cache, get_db, require_cron_secret
from launchspace.schemas import ApiResponse, LifecycleRunResponse
from launchspace.services import RankingService
from launchspace.services.cache_service import CacheService, commit_and_invalidate

router = APIRouter()


@router.get("/competitions", response_model=ApiResponse, dependencies=[Depends(require_cron_secret)])
async def run_competition_lifecycle(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Create, activate and complete weekly competitions.

    Same job the in-process scheduler runs daily; exposed for external cron.
    """
    summary = await RankingService(db).run_competition_lifecycle()
    await commit_and_invalidate(db, cache)
    return ApiResponse(data=LifecycleRunResponse(**summary))
