"""Submission Pydantic schemas for request/response validation."""

from datetime import datetime
from typing import Annotated, List, Literal, Optional
from uuid import UUID

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    HttpUrl,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

_http_url = TypeAdapter(HttpUrl)


def _check_url(value: str) -> str:
    """Validate an http(s) URL but keep the caller's spelling."""
    try:
        _http_url.validate_python(value)
    except ValidationError:
        raise ValueError("Invalid URL")
    return value


def _check_optional_video(value: Optional[str]) -> Optional[str]:
    if value:
        return _check_url(value)
    return value


def _check_unique_categories(value: Optional[List[str]]) -> Optional[List[str]]:
    if value and len({c.lower() for c in value}) != len(value):
        raise ValueError("Categories must be unique")
    return value


WebUrl = Annotated[str, AfterValidator(_check_url)]
Slug = Annotated[str, Field(pattern=r"^[a-z0-9-]+$", max_length=120)]
WeekId = Annotated[str, Field(pattern=r"^\d{4}-W\d{2}$")]
CategoryName = Annotated[str, Field(min_length=1, max_length=100)]

Pricing = Literal["Free", "Freemium", "Paid"]
Plan = Literal["standard", "premium", "support"]
SubmissionStatus = Literal["pending", "approved", "live", "archived", "rejected"]


class SubmissionCreateRequest(BaseModel):
    """Payload for launching a new submission.

    Counters, score, status and ownership are never accepted from clients;
    unknown keys are rejected.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    # Basic information
    name: str = Field(min_length=1, max_length=100)
    slug: Optional[Slug] = None
    short_description: str = Field(min_length=10, max_length=200)
    full_description: str = Field(min_length=50, max_length=3000)

    # URLs and media
    website_url: WebUrl
    logo_url: Optional[WebUrl] = None
    screenshots: List[WebUrl] = Field(default_factory=list, max_length=5)
    video_url: Annotated[Optional[str], AfterValidator(_check_optional_video)] = None

    # Categorisation
    categories: List[CategoryName] = Field(min_length=1, max_length=3)
    pricing: Pricing
    tags: List[str] = Field(default_factory=list)

    # Launch information
    launch_week: Optional[WeekId] = None

    # Contact, plan
    contact_email: Optional[EmailStr] = None
    plan: Plan
    backlink_url: Optional[WebUrl] = None

    @field_validator("categories")
    @classmethod
    def unique_categories(cls, v: List[str]) -> List[str]:
        return _check_unique_categories(v)

    @model_validator(mode="after")
    def support_plan_needs_backlink(self) -> "SubmissionCreateRequest":
        if self.plan == "support" and not self.backlink_url:
            raise ValueError("backlink_url is required for the support plan")
        return self


class SubmissionUpdateRequest(BaseModel):
    """Owner-editable fields. Everything is optional; bounds match creation."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    short_description: Optional[str] = Field(None, min_length=10, max_length=200)
    full_description: Optional[str] = Field(None, min_length=50, max_length=3000)
    website_url: Optional[WebUrl] = None
    logo_url: Optional[WebUrl] = None
    screenshots: Optional[List[WebUrl]] = Field(None, max_length=5)
    video_url: Annotated[Optional[str], AfterValidator(_check_optional_video)] = None
    categories: Optional[List[CategoryName]] = Field(None, min_length=1, max_length=3)
    pricing: Optional[Pricing] = None
    tags: Optional[List[str]] = None
    contact_email: Optional[EmailStr] = None
    backlink_url: Optional[WebUrl] = None

    @field_validator("categories")
    @classmethod
    def unique_categories(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _check_unique_categories(v)


class SubmissionResponse(BaseModel):
    """Standard submission response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    slug: str
    name: str
    short_description: str
    website_url: str
    logo_url: Optional[str] = None
    categories: List[str]
    pricing: str
    launch_week: str
    plan: str
    status: str
    featured: bool
    upvotes: int
    downvotes: int
    ranking_score: float
    views: int
    clicks: int
    link_type: str
    weekly_winner: bool
    weekly_position: Optional[int] = None
    submitted_by: str
    created_at: datetime
    updated_at: datetime


class SubmissionDetailResponse(SubmissionResponse):
    """Detailed submission response with the viewer's own vote."""

    full_description: str
    screenshots: List[str] = []
    video_url: Optional[str] = None
    tags: List[str] = []
    backlink_url: Optional[str] = None
    launch_date: datetime
    published_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    user_vote: Optional[str] = None


class RankedSubmissionResponse(SubmissionResponse):
    """Submission annotated with its 1-based position in a week."""

    rank: int


class VoteRequest(BaseModel):
    """Request schema for voting on a submission."""

    model_config = ConfigDict(populate_by_name=True)

    vote_type: str = Field(alias="voteType")  # "upvote" or "downvote"


class VoteResultResponse(BaseModel):
    """Outcome of a vote mutation and the submission's fresh tally."""

    submission_id: UUID
    outcome: str
    user_vote: Optional[str] = None
    upvotes: int
    downvotes: int
    ranking_score: float


class StatusUpdateRequest(BaseModel):
    """Moderator status change."""

    status: SubmissionStatus
    rejection_reason: Optional[str] = Field(None, max_length=1000)


class FeaturedUpdateRequest(BaseModel):
    """Moderator featured toggle."""

    featured: bool
