"""User dashboard and platform statistics schemas."""

from typing import List

from pydantic import BaseModel

from launchspace.schemas.submission import SubmissionResponse


class UserStats(BaseModel):
    """Aggregates over one user's submissions."""

    total_apps: int = 0
    total_views: int = 0
    total_upvotes: int = 0
    approved_apps: int = 0
    pending_apps: int = 0


class UserDashboardResponse(BaseModel):
    """A submitter's apps plus their aggregate stats."""

    apps: List[SubmissionResponse]
    stats: UserStats


class PlatformStats(BaseModel):
    """Site-wide counters."""

    total_apps: int
    total_users: int
    this_week_apps: int
    total_votes: int
