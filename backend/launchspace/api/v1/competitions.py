"""Competition API endpoints: weeks, leaderboards and winners."""

from datetime import datetime, timezone
from typing import List, Literal, Optional, Tuple

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.core.exceptions import NotFoundError
from launchspace.core.weeks import current_week_id
from launchspace.dependencies import get_admin_user_id, get_cache, get_db
from launchspace.models.competition import Competition
from launchspace.models.submission import Submission
from launchspace.schemas import (
    ApiResponse,
    CompetitionResponse,
    RankedSubmissionResponse,
    SubmissionResponse,
    TimeLeft,
)
from launchspace.services import CompetitionService, RankingService
from launchspace.services.cache_service import (
    RANKING_TTL,
    CacheService,
    cache_key_for_ranking,
    commit_and_invalidate,
)
from launchspace.services.competition_service import time_left

router = APIRouter()

WEEK_ID = r"^\d{4}-W\d{2}$"


def _competition(competition: Competition, now: datetime) -> CompetitionResponse:
    response = CompetitionResponse.model_validate(competition)
    if competition.status == "completed":
        return response
    return response.model_copy(update={"time_left": TimeLeft(**time_left(competition, now))})


def _ranked(rows: List[Tuple[int, Submission]]) -> List[RankedSubmissionResponse]:
    return [
        RankedSubmissionResponse(**SubmissionResponse.model_validate(s).model_dump(), rank=rank)
        for rank, s in rows
    ]


async def _ranking_response(week: str, db: AsyncSession, cache: CacheService) -> ApiResponse:
    cache_key = cache_key_for_ranking(week)
    cached = await cache.get(cache_key)
    if cached:
        return ApiResponse.model_validate_json(cached)

    rows = await RankingService(db).get_week_ranking(week)
    response = ApiResponse(data={"week_id": week, "apps": _ranked(rows)})
    await cache.set(cache_key, response.model_dump_json(), ttl=RANKING_TTL)
    return response


@router.get("", response_model=ApiResponse)
async def list_competitions(
    status: Optional[Literal["upcoming", "active", "completed"]] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Competitions, newest week first."""
    now = datetime.now(timezone.utc)
    competitions = await CompetitionService(db).list_competitions(status=status, limit=limit)
    return ApiResponse(data=[_competition(c, now) for c in competitions])


@router.get("/current", response_model=ApiResponse)
async def current_competition(db: AsyncSession = Depends(get_db)):
    """The running competition, or the next one if none is running."""
    now = datetime.now(timezone.utc)
    competition = await CompetitionService(db).get_current(now)
    if competition is None:
        raise NotFoundError("Competition", "current")
    return ApiResponse(data=_competition(competition, now))


@router.get("/available", response_model=ApiResponse)
async def available_weeks(
    plan: Literal["standard", "premium", "support"] = Query("standard"),
    db: AsyncSession = Depends(get_db),
):
    """Weeks that can still take a submission on the given plan."""
    now = datetime.now(timezone.utc)
    competitions = await CompetitionService(db).get_available_weeks(plan=plan, now=now)
    return ApiResponse(data=[_competition(c, now) for c in competitions])


@router.get("/ranking", response_model=ApiResponse)
async def current_week_ranking(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Leaderboard of the current week. Cached for 30 seconds."""
    return await _ranking_response(current_week_id(), db, cache)


@router.get("/{week_id}/ranking", response_model=ApiResponse)
async def week_ranking(
    week_id: str = Path(..., pattern=WEEK_ID),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Leaderboard of any week. Cached for 30 seconds."""
    return await _ranking_response(week_id, db, cache)


@router.post("/{week_id}/winners", response_model=ApiResponse)
async def select_winners(
    week_id: str = Path(..., pattern=WEEK_ID),
    _admin: str = Depends(get_admin_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Pick the top three of a finished week. Re-running replaces the podium."""
    winners = await RankingService(db).select_weekly_winners(week_id)
    await commit_and_invalidate(db, cache)
    return ApiResponse(
        data={
            "week_id": week_id,
            "winners": [SubmissionResponse.model_validate(s) for s in winners],
        }
    )
