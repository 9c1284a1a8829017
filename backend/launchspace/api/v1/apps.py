"""Apps API endpoints: listing, launching, editing and voting."""

from typing import Any, Dict, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from launchspace.dependencies import get_cache, get_current_user_id, get_db, get_optional_user_id
from launchspace.models.submission import RANKED_STATUSES, Submission
from launchspace.schemas import (
    ApiResponse,
    PaginationMeta,
    SubmissionDetailResponse,
    SubmissionResponse,
    VoteRequest,
    VoteResultResponse,
)
from launchspace.services import RankingService, SubmissionFilters, SubmissionService, VoteResult
from launchspace.services.cache_service import LIST_TTL, CacheService, cache_key_for_apps, commit_and_invalidate

router = APIRouter()


def _detail(submission: Submission, user_vote: Optional[str]) -> SubmissionDetailResponse:
    return SubmissionDetailResponse.model_validate(submission).model_copy(update={"user_vote": user_vote})


def _vote_result(result: VoteResult) -> VoteResultResponse:
    submission = result.submission
    return VoteResultResponse(
        submission_id=submission.id,
        outcome=result.outcome.value,
        user_vote=result.user_vote,
        upvotes=submission.upvotes,
        downvotes=submission.downvotes,
        ranking_score=submission.ranking_score,
    )


@router.get("", response_model=ApiResponse)
async def list_apps(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    status_filter: Optional[Literal["approved", "live", "archived"]] = Query(
        None, alias="status", description="Defaults to approved and live apps"
    ),
    category: Optional[str] = Query(None, description="Filter by category name"),
    week: Optional[str] = Query(None, pattern=r"^\d{4}-W\d{2}$", description="Filter by launch week"),
    featured: Optional[bool] = Query(None, description="Only featured (or non-featured) apps"),
    search: Optional[str] = Query(None, min_length=1, max_length=100, description="Name, description or category"),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """List public apps ordered by ranking score, newest first on ties.

    This endpoint is cached for 60 seconds.
    """
    cache_key = cache_key_for_apps(
        page=page,
        limit=limit,
        status=status_filter,
        category=category,
        launch_week=week,
        featured=featured,
        search=search,
    )
    cached = await cache.get(cache_key)
    if cached:
        return ApiResponse.model_validate_json(cached)

    service = SubmissionService(db)
    filters = SubmissionFilters(
        status=status_filter or RANKED_STATUSES,
        category=category,
        launch_week=week,
        featured=featured,
        search=search,
    )
    submissions, total = await service.list_submissions(filters, page=page, limit=limit)

    response = ApiResponse(
        data=[SubmissionResponse.model_validate(s) for s in submissions],
        meta=PaginationMeta.build(page, limit, total),
    )
    await cache.set(cache_key, response.model_dump_json(), ttl=LIST_TTL)
    return response


@router.get("/featured", response_model=ApiResponse)
async def featured_apps(
    limit: int = Query(6, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Moderator-picked apps that are currently public."""
    submissions = await SubmissionService(db).get_featured(limit=limit)
    return ApiResponse(data=[SubmissionResponse.model_validate(s) for s in submissions])


@router.get("/trending", response_model=ApiResponse)
async def trending_apps(
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Best-scoring apps launched in the last three days."""
    submissions = await SubmissionService(db).get_trending(limit=limit)
    return ApiResponse(data=[SubmissionResponse.model_validate(s) for s in submissions])


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_app(
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Launch a new app. It starts as pending until a moderator approves it."""
    submission = await RankingService(db).submit_app(payload, user_id=user_id)
    await commit_and_invalidate(db, cache)
    return ApiResponse(data=_detail(submission, None))


@router.get("/{slug}", response_model=ApiResponse)
async def get_app(
    slug: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    """App details with the caller's own vote. Counts as a view."""
    submission, user_vote = await RankingService(db).get_app_details(slug, viewer_id=user_id)
    return ApiResponse(data=_detail(submission, user_vote))


@router.put("/{submission_id}", response_model=ApiResponse)
async def update_app(
    submission_id: UUID,
    patch: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Owner edit. Counters, score, status and plan cannot be changed here."""
    submission = await SubmissionService(db).update_submission(submission_id, patch, user_id=user_id)
    await commit_and_invalidate(db, cache)
    return ApiResponse(data=_detail(submission, None))


@router.delete("/{submission_id}", response_model=ApiResponse)
async def delete_app(
    submission_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Withdraw a pending or rejected app."""
    await RankingService(db).withdraw_app(submission_id, user_id=user_id)
    await commit_and_invalidate(db, cache)
    return ApiResponse(data={"id": str(submission_id), "deleted": True})


@router.post("/{slug}", response_model=ApiResponse)
async def app_action(
    slug: str,
    action: Literal["vote", "unvote", "click"] = Query(...),
    body: Optional[VoteRequest] = Body(None),
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Vote, retract a vote, or record an outbound click.

    Voting needs a signed-in caller and a ``voteType`` of upvote or downvote.
    """
    if action != "click" and not user_id:
        raise UnauthorizedError()

    service = RankingService(db)
    submission = await service.submissions.get_by_slug(slug)
    if submission is None:
        raise NotFoundError("App", slug)

    if action == "click":
        await service.submissions.increment_clicks(submission.id)
        return ApiResponse(data={"id": str(submission.id), "clicked": True})

    if action == "vote":
        if body is None:
            raise ValidationError(
                "voteType is required",
                errors=[{"field": "voteType", "message": "Field required"}],
            )
        result = await service.vote_for_app(user_id, submission.id, body.vote_type)
    else:
        result = await service.unvote_app(user_id, submission.id)

    if result.changed:
        await commit_and_invalidate(db, cache)
    return ApiResponse(data=_vote_result(result))

