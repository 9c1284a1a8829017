"""Pydantic schemas for the Launch Space API.

All request/response models are defined here for easy import.
"""

from launchspace.schemas.common import ApiResponse, ErrorDetail, ErrorResponse, PaginationMeta
from launchspace.schemas.submission import (
    FeaturedUpdateRequest,
    RankedSubmissionResponse,
    StatusUpdateRequest,
    SubmissionCreateRequest,
    SubmissionDetailResponse,
    SubmissionResponse,
    SubmissionUpdateRequest,
    VoteRequest,
    VoteResultResponse,
)
from launchspace.schemas.competition import CompetitionResponse, LifecycleRunResponse, TimeLeft
from launchspace.schemas.user import PlatformStats, UserDashboardResponse, UserStats
from launchspace.schemas.health import HealthCheckResponse

__all__ = [
    # Common
    "ApiResponse",
    "ErrorDetail",
    "ErrorResponse",
    "PaginationMeta",
    # Submission
    "SubmissionCreateRequest",
    "SubmissionUpdateRequest",
    "SubmissionResponse",
    "SubmissionDetailResponse",
    "RankedSubmissionResponse",
    "VoteRequest",
    "VoteResultResponse",
    "StatusUpdateRequest",
    "FeaturedUpdateRequest",
    # Competition
    "CompetitionResponse",
    "LifecycleRunResponse",
    "TimeLeft",
    # User
    "UserStats",
    "UserDashboardResponse",
    "PlatformStats",
    # Health
    "HealthCheckResponse",
]
