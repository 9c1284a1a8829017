"""Endpoints scoped to the signed-in submitter."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.dependencies import get_current_user_id, get_db
from launchspace.schemas import (
    ApiResponse,
    PaginationMeta,
    SubmissionResponse,
    UserDashboardResponse,
    UserStats,
)
from launchspace.services import SubmissionFilters, SubmissionService

router = APIRouter()


@router.get("/me/apps", response_model=ApiResponse)
async def my_apps(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """The caller's own apps in every status."""
    submissions, total = await SubmissionService(db).list_submissions(
        SubmissionFilters(submitted_by=user_id), page=page, limit=limit
    )
    return ApiResponse(
        data=[SubmissionResponse.model_validate(s) for s in submissions],
        meta=PaginationMeta.build(page, limit, total),
    )


@router.get("/me/dashboard", response_model=ApiResponse)
async def my_dashboard(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    service = SubmissionService(db)
    submissions, _ = await service.list_submissions(
        SubmissionFilters(submitted_by=user_id), page=1, limit=100
    )
    stats = await service.get_user_stats(user_id)
    return ApiResponse(
        data=UserDashboardResponse(
            apps=[SubmissionResponse.model_validate(s) for s in submissions],
            stats=UserStats(**stats),
        )
    )
