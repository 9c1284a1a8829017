"""Submission CRUD service.

Owns slug assignment, filtered listings, owner edits, moderation status
changes and the view/click counters. Vote tallies are written only by
:class:`~launchspace.services.vote_service.VoteService`.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.core.exceptions import (
    DuplicateSlugError,
    ForbiddenError,
    IllegalStateError,
    NotFoundError,
    ValidationError,
)
from launchspace.core.slugs import generate_slug, with_suffix
from launchspace.core.weeks import week_id
from launchspace.db.retry import storage_read_retry
from launchspace.models.base import utcnow
from launchspace.models.submission import RANKED_STATUSES, Submission, SubmissionCategory
from launchspace.schemas.submission import SubmissionCreateRequest, SubmissionUpdateRequest

logger = structlog.get_logger(__name__)

# Fields only the system (votes, moderation, counters) may write
PROTECTED_FIELDS = frozenset({
    "id", "slug", "submitted_by", "launch_week", "launch_date", "plan",
    "status", "rejection_reason", "featured", "published_at",
    "views", "clicks", "upvotes", "downvotes", "ranking_score",
    "weekly_winner", "weekly_position",
    "link_type", "dofollow_reason", "dofollow_awarded_at",
    "created_at", "updated_at",
})

# Columns an owner may edit but never clear
REQUIRED_FIELDS = frozenset({
    "name", "short_description", "full_description", "website_url",
    "categories", "pricing", "screenshots", "tags",
})

DELETABLE_STATUSES = ("pending", "rejected")

STATUS_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "pending": ("approved", "rejected"),
    "approved": ("live", "rejected"),
    "live": ("archived",),
    "archived": (),
    "rejected": (),
}

TRENDING_WINDOW = timedelta(days=3)


def _validation_error(message: str, exc: PydanticValidationError) -> ValidationError:
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"]) or None,
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    return ValidationError(message, errors=errors)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class SubmissionFilters:
    """Listing filters. Every set field narrows the result (AND)."""

    status: Optional[Union[str, Sequence[str]]] = None
    category: Optional[str] = None
    launch_week: Optional[str] = None
    featured: Optional[bool] = None
    search: Optional[str] = None
    submitted_by: Optional[str] = None


class SubmissionService:
    """Service for managing submissions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="submission_service")

    async def create_submission(
        self,
        data: Union[SubmissionCreateRequest, Dict[str, Any]],
        submitted_by: str,
        now: Optional[datetime] = None,
    ) -> Submission:
        """Validate and store a new pending submission with zeroed counters.

        An explicit slug must be free; a derived slug gets ``-1``, ``-2``, ...
        appended until it is unique. ``launch_week`` defaults to the week
        of ``now``.

        Raises:
            ValidationError: Payload fails validation
            DuplicateSlugError: Explicit slug already taken
        """
        payload = self.validate_create(data)
        now = now or utcnow()

        if payload.slug:
            if await self._slug_exists(payload.slug):
                raise DuplicateSlugError(payload.slug)
            slug = payload.slug
        else:
            slug = await self._unique_slug(generate_slug(payload.name))

        fields = payload.model_dump(exclude={"slug", "launch_week"})
        dofollow = payload.plan != "standard"

        submission = Submission(
            **fields,
            slug=slug,
            launch_week=payload.launch_week or week_id(now),
            launch_date=now,
            submitted_by=submitted_by,
            status="pending",
            link_type="dofollow" if dofollow else "nofollow",
            dofollow_reason=payload.plan if dofollow else None,
            dofollow_awarded_at=now if dofollow else None,
            featured=False,
            views=0,
            clicks=0,
            upvotes=0,
            downvotes=0,
            ranking_score=0.0,
            weekly_winner=False,
        )
        self.db.add(submission)
        await self.db.flush()

        self.logger.info(
            "submission_created",
            submission_id=str(submission.id),
            slug=slug,
            launch_week=submission.launch_week,
            plan=submission.plan,
        )
        return submission

    @staticmethod
    def validate_create(
        data: Union[SubmissionCreateRequest, Dict[str, Any]]
    ) -> SubmissionCreateRequest:
        if isinstance(data, SubmissionCreateRequest):
            return data
        try:
            return SubmissionCreateRequest.model_validate(data)
        except PydanticValidationError as e:
            raise _validation_error("Submission failed validation", e) from e

    @storage_read_retry
    async def get_by_slug(self, slug: str) -> Optional[Submission]:
        result = await self.db.execute(select(Submission).where(Submission.slug == slug))
        return result.scalar_one_or_none()

    @storage_read_retry
    async def get_by_id(self, submission_id: uuid.UUID) -> Optional[Submission]:
        return await self.db.get(Submission, submission_id)

    async def require(self, submission_id: uuid.UUID) -> Submission:
        submission = await self.get_by_id(submission_id)
        if submission is None:
            raise NotFoundError("Submission", str(submission_id))
        return submission

    @storage_read_retry
    async def list_submissions(
        self,
        filters: Optional[SubmissionFilters] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Submission], int]:
        """Filtered, paginated listing ordered by score then recency.

        Args:
            filters: Optional filters, combined with AND
            page: Page number (1-indexed)
            limit: Results per page

        Returns:
            Tuple of (submissions, total count before pagination)
        """
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")

        conditions = self._conditions(filters or SubmissionFilters())

        count_query = select(func.count()).select_from(Submission).where(*conditions)
        total = (await self.db.execute(count_query)).scalar_one()

        query = (
            select(Submission)
            .where(*conditions)
            .order_by(Submission.ranking_score.desc(), Submission.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        submissions = list(result.scalars().all())

        self.logger.debug("submissions_listed", total=total, page=page, returned=len(submissions))
        return submissions, total

    async def update_submission(
        self,
        submission_id: uuid.UUID,
        patch: Dict[str, Any],
        user_id: Optional[str] = None,
    ) -> Submission:
        """Apply an owner edit.

        ``user_id`` of None skips the ownership check (internal callers).

        Raises:
            NotFoundError: Submission does not exist
            ForbiddenError: Caller is not the owner, or a protected field was sent
            ValidationError: Unknown field or invalid value
        """
        submission = await self.require(submission_id)

        if user_id is not None and submission.submitted_by != user_id:
            raise ForbiddenError("Only the submitter can edit this app")

        protected = sorted(PROTECTED_FIELDS.intersection(patch))
        if protected:
            raise ForbiddenError(f"Fields cannot be edited: {', '.join(protected)}")

        try:
            changes = SubmissionUpdateRequest.model_validate(patch).model_dump(exclude_unset=True)
        except PydanticValidationError as e:
            raise _validation_error("Update failed validation", e) from e

        cleared = sorted(k for k, v in changes.items() if v is None and k in REQUIRED_FIELDS)
        if cleared:
            raise ValidationError(
                "Required fields cannot be cleared",
                errors=[{"field": k, "message": "Field is required"} for k in cleared],
            )

        backlink = changes.get("backlink_url", submission.backlink_url)
        if submission.plan == "support" and not backlink:
            raise ValidationError(
                "backlink_url is required for the support plan",
                errors=[{"field": "backlink_url", "message": "Field is required"}],
            )

        for key, value in changes.items():
            setattr(submission, key, value)
        await self.db.flush()

        self.logger.info(
            "submission_updated",
            submission_id=str(submission.id),
            fields=sorted(changes),
        )
        return submission

    async def delete_submission(
        self,
        submission_id: uuid.UUID,
        user_id: Optional[str] = None,
    ) -> Submission:
        """Delete a pending or rejected submission along with its votes.

        Returns the deleted (now detached) submission.

        Raises:
            NotFoundError: Submission does not exist
            ForbiddenError: Caller is not the owner
            IllegalStateError: Submission already went through moderation
        """
        submission = await self.require(submission_id)

        if user_id is not None and submission.submitted_by != user_id:
            raise ForbiddenError("Only the submitter can delete this app")
        if submission.status not in DELETABLE_STATUSES:
            raise IllegalStateError(
                f"Only {' or '.join(DELETABLE_STATUSES)} submissions can be deleted"
            )

        await self.db.delete(submission)
        await self.db.flush()

        self.logger.info("submission_deleted", submission_id=str(submission_id))
        return submission

    async def set_status(
        self,
        submission_id: uuid.UUID,
        status: str,
        rejection_reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Submission:
        """Moderation transition, e.g. pending -> approved.

        Raises:
            NotFoundError: Submission does not exist
            IllegalStateError: Transition not allowed from the current status
        """
        submission = await self.require(submission_id)

        allowed = STATUS_TRANSITIONS.get(submission.status, ())
        if status not in allowed:
            raise IllegalStateError(f"Cannot move submission from {submission.status} to {status}")

        previous = submission.status
        submission.status = status
        if status == "rejected":
            submission.rejection_reason = rejection_reason
        if status in RANKED_STATUSES and submission.published_at is None:
            submission.published_at = now or utcnow()
        await self.db.flush()

        self.logger.info(
            "submission_status_changed",
            submission_id=str(submission.id),
            from_status=previous,
            to_status=status,
        )
        return submission

    async def go_live_for_week(self, launch_week: str, now: Optional[datetime] = None) -> int:
        """Promote every approved submission of a week to live."""
        stmt = (
            update(Submission)
            .where(Submission.launch_week == launch_week, Submission.status == "approved")
            .values(status="live", published_at=func.coalesce(Submission.published_at, now or utcnow()))
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    async def set_featured(self, submission_id: uuid.UUID, featured: bool) -> Submission:
        submission = await self.require(submission_id)
        submission.featured = featured
        await self.db.flush()
        self.logger.info("submission_featured", submission_id=str(submission.id), featured=featured)
        return submission

    async def increment_views(self, submission_id: uuid.UUID) -> bool:
        return await self._increment(submission_id, Submission.views)

    async def increment_clicks(self, submission_id: uuid.UUID) -> bool:
        return await self._increment(submission_id, Submission.clicks)

    @storage_read_retry
    async def get_featured(self, limit: int = 6) -> List[Submission]:
        query = (
            select(Submission)
            .where(Submission.featured.is_(True), Submission.status.in_(RANKED_STATUSES))
            .order_by(Submission.ranking_score.desc(), Submission.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    @storage_read_retry
    async def get_trending(self, limit: int = 10, now: Optional[datetime] = None) -> List[Submission]:
        """Best-scoring open submissions created in the last three days."""
        since = (now or utcnow()) - TRENDING_WINDOW
        query = (
            select(Submission)
            .where(Submission.status.in_(RANKED_STATUSES), Submission.created_at >= since)
            .order_by(Submission.ranking_score.desc(), Submission.views.desc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    @storage_read_retry
    async def get_user_stats(self, user_id: str) -> Dict[str, int]:
        """Aggregates over one submitter's apps."""
        query = select(
            func.count(Submission.id),
            func.coalesce(func.sum(Submission.views), 0),
            func.coalesce(func.sum(Submission.upvotes), 0),
            func.count(Submission.id).filter(Submission.status.in_(RANKED_STATUSES)),
            func.count(Submission.id).filter(Submission.status == "pending"),
        ).where(Submission.submitted_by == user_id)
        total, views, upvotes, approved, pending = (await self.db.execute(query)).one()
        return {
            "total_apps": total,
            "total_views": int(views),
            "total_upvotes": int(upvotes),
            "approved_apps": approved,
            "pending_apps": pending,
        }

    @storage_read_retry
    async def count(self, filters: Optional[SubmissionFilters] = None) -> int:
        conditions = self._conditions(filters or SubmissionFilters())
        query = select(func.count()).select_from(Submission).where(*conditions)
        return (await self.db.execute(query)).scalar_one()

    def _conditions(self, filters: SubmissionFilters) -> list:
        conditions = []

        if filters.status:
            statuses = [filters.status] if isinstance(filters.status, str) else list(filters.status)
            conditions.append(Submission.status.in_(statuses))

        if filters.category:
            conditions.append(
                Submission.id.in_(
                    select(SubmissionCategory.submission_id).where(
                        SubmissionCategory.name == filters.category
                    )
                )
            )

        if filters.launch_week:
            conditions.append(Submission.launch_week == filters.launch_week)

        if filters.featured is not None:
            conditions.append(Submission.featured.is_(filters.featured))

        if filters.submitted_by:
            conditions.append(Submission.submitted_by == filters.submitted_by)

        if filters.search:
            term = f"%{_escape_like(filters.search.strip())}%"
            category_hits = select(SubmissionCategory.submission_id).where(
                SubmissionCategory.name.ilike(term, escape="\\")
            )
            conditions.append(
                or_(
                    Submission.name.ilike(term, escape="\\"),
                    Submission.short_description.ilike(term, escape="\\"),
                    Submission.id.in_(category_hits),
                )
            )

        return conditions

    async def _increment(self, submission_id: uuid.UUID, column) -> bool:
        stmt = (
            update(Submission)
            .where(Submission.id == submission_id)
            .values({column.key: column + 1})
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def _slug_exists(self, slug: str) -> bool:
        result = await self.db.execute(select(Submission.id).where(Submission.slug == slug))
        return result.first() is not None

    async def _unique_slug(self, base: str) -> str:
        candidate = base
        counter = 1
        while await self._slug_exists(candidate):
            candidate = with_suffix(base, counter)
            counter += 1
        return candidate
