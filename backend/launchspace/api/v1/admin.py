"""Moderation endpoints. Callers must be listed in ADMIN_USER_IDS."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.dependencies import get_admin_user_id, get_cache, get_db
from launchspace.schemas import (
    ApiResponse,
    FeaturedUpdateRequest,
    StatusUpdateRequest,
    SubmissionResponse,
)
from launchspace.services import SubmissionService
from launchspace.services.cache_service import CacheService, commit_and_invalidate

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.patch("/apps/{submission_id}/status", response_model=ApiResponse)
async def update_app_status(
    submission_id: UUID,
    request: StatusUpdateRequest,
    admin_id: str = Depends(get_admin_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Move an app through moderation, e.g. pending -> approved."""
    submission = await SubmissionService(db).set_status(
        submission_id, request.status, rejection_reason=request.rejection_reason
    )
    logger.info("admin_status_change", admin_id=admin_id, submission_id=str(submission_id), status=request.status)
    await commit_and_invalidate(db, cache)
    return ApiResponse(data=SubmissionResponse.model_validate(submission))


@router.patch("/apps/{submission_id}/featured", response_model=ApiResponse)
async def update_app_featured(
    submission_id: UUID,
    request: FeaturedUpdateRequest,
    _admin: str = Depends(get_admin_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    submission = await SubmissionService(db).set_featured(submission_id, request.featured)
    await commit_and_invalidate(db, cache)
    return ApiResponse(data=SubmissionResponse.model_validate(submission))
