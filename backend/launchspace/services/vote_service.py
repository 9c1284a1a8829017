"""Vote service for per-user submission votes.

Tallies on ``submissions`` are never adjusted incrementally. Every mutation
of the ``votes`` table is followed by a recompute that counts the vote rows
for the submission and writes upvotes, downvotes and ranking_score in one
UPDATE, so concurrent voters cannot drift the counters.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.core.exceptions import IllegalStateError, NotFoundError, ValidationError
from launchspace.db.retry import storage_read_retry
from launchspace.db.upsert import insert_for
from launchspace.models.base import utcnow
from launchspace.models.submission import RANKED_STATUSES, Submission
from launchspace.models.vote import VOTE_TYPES, Vote

logger = structlog.get_logger(__name__)

DOWNVOTE_WEIGHT = 0.5


def ranking_score(upvotes: int, downvotes: int) -> float:
    """Score used to order a week's submissions."""
    return upvotes - downvotes * DOWNVOTE_WEIGHT


class VoteOutcome(str, Enum):
    CREATED = "created"
    CHANGED = "changed"
    DUPLICATE = "duplicate"
    RETRACTED = "retracted"
    NOT_VOTED = "not_voted"


@dataclass
class VoteResult:
    """What a vote mutation did and the submission's tally afterwards."""

    outcome: VoteOutcome
    submission: Submission
    user_vote: Optional[str]

    @property
    def changed(self) -> bool:
        return self.outcome in (VoteOutcome.CREATED, VoteOutcome.CHANGED, VoteOutcome.RETRACTED)


class VoteService:
    """Handles submission voting with one vote row per (user, submission)."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="vote_service")

    async def cast_vote(
        self,
        user_id: str,
        submission_id: uuid.UUID,
        vote_type: str,
    ) -> VoteResult:
        """Create or change the caller's vote on a submission.

        Casting the same type twice is reported as DUPLICATE and leaves the
        tally untouched. Casting the other type flips the existing row.

        Raises:
            ValidationError: Unknown vote type
            NotFoundError: Submission does not exist
            IllegalStateError: Submission is not open for voting
        """
        if vote_type not in VOTE_TYPES:
            raise ValidationError(
                f"vote_type must be one of {', '.join(VOTE_TYPES)}",
                errors=[{"field": "vote_type", "message": "Invalid vote type"}],
            )

        submission = await self._lock_open_submission(submission_id)

        existing = await self._get_vote(user_id, submission_id)
        if existing is None:
            if await self._insert_vote(user_id, submission_id, vote_type):
                await self.recompute_scores(submission)
                self.logger.info(
                    "vote_created",
                    submission_id=str(submission_id),
                    user_id=user_id,
                    vote_type=vote_type,
                )
                return VoteResult(VoteOutcome.CREATED, submission, vote_type)
            # Another request inserted the row between our read and insert
            existing = await self._get_vote(user_id, submission_id)

        if existing.vote_type == vote_type:
            return VoteResult(VoteOutcome.DUPLICATE, submission, vote_type)

        existing.vote_type = vote_type
        await self.db.flush()
        await self.recompute_scores(submission)

        self.logger.info(
            "vote_changed",
            submission_id=str(submission_id),
            user_id=user_id,
            vote_type=vote_type,
        )
        return VoteResult(VoteOutcome.CHANGED, submission, vote_type)

    async def retract_vote(self, user_id: str, submission_id: uuid.UUID) -> VoteResult:
        """Remove the caller's vote, if any, and recompute the tally."""
        submission = await self._lock_open_submission(submission_id)

        existing = await self._get_vote(user_id, submission_id)
        if existing is None:
            return VoteResult(VoteOutcome.NOT_VOTED, submission, None)

        await self.db.delete(existing)
        await self.db.flush()
        await self.recompute_scores(submission)

        self.logger.info(
            "vote_retracted",
            submission_id=str(submission_id),
            user_id=user_id,
        )
        return VoteResult(VoteOutcome.RETRACTED, submission, None)

    async def recompute_scores(self, submission: Submission) -> Submission:
        """Rewrite the submission's tally from the vote rows.

        Counting and writing happen in a single UPDATE statement, so the
        stored tally always matches the vote rows visible to it.
        """
        await self.db.flush()

        upvotes = self._count_subquery(submission.id, "upvote")
        downvotes = self._count_subquery(submission.id, "downvote")

        stmt = (
            update(Submission)
            .where(Submission.id == submission.id)
            .values(
                upvotes=upvotes,
                downvotes=downvotes,
                ranking_score=upvotes - downvotes * DOWNVOTE_WEIGHT,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)
        await self.db.refresh(submission)

        self.logger.debug(
            "scores_recomputed",
            submission_id=str(submission.id),
            upvotes=submission.upvotes,
            downvotes=submission.downvotes,
            ranking_score=submission.ranking_score,
        )
        return submission

    @storage_read_retry
    async def get_user_vote(self, user_id: str, submission_id: uuid.UUID) -> Optional[str]:
        """Vote type the user cast on a submission, or None."""
        stmt = select(Vote.vote_type).where(
            Vote.user_id == user_id,
            Vote.submission_id == submission_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    @storage_read_retry
    async def count_votes(self) -> int:
        result = await self.db.execute(select(func.count(Vote.id)))
        return result.scalar_one()

    @storage_read_retry
    async def find_drift(self, launch_week: Optional[str] = None) -> List[Dict[str, Any]]:
        """Submissions whose stored tally disagrees with their vote rows."""
        counts = (
            select(
                Vote.submission_id,
                func.count(Vote.id).filter(Vote.vote_type == "upvote").label("upvotes"),
                func.count(Vote.id).filter(Vote.vote_type == "downvote").label("downvotes"),
            )
            .group_by(Vote.submission_id)
            .subquery()
        )
        query = select(
            Submission.id,
            Submission.slug,
            Submission.upvotes,
            Submission.downvotes,
            Submission.ranking_score,
            func.coalesce(counts.c.upvotes, 0).label("actual_upvotes"),
            func.coalesce(counts.c.downvotes, 0).label("actual_downvotes"),
        ).outerjoin(counts, counts.c.submission_id == Submission.id)
        if launch_week:
            query = query.where(Submission.launch_week == launch_week)

        drift = []
        for row in await self.db.execute(query):
            expected = ranking_score(row.actual_upvotes, row.actual_downvotes)
            if (
                row.upvotes != row.actual_upvotes
                or row.downvotes != row.actual_downvotes
                or abs(row.ranking_score - expected) > 1e-9
            ):
                drift.append(
                    {
                        "id": row.id,
                        "slug": row.slug,
                        "stored": (row.upvotes, row.downvotes, row.ranking_score),
                        "actual": (row.actual_upvotes, row.actual_downvotes, expected),
                    }
                )
        return drift

    async def reconcile(self, launch_week: Optional[str] = None, dry_run: bool = False) -> List[Dict[str, Any]]:
        """Recompute every drifted submission. Returns what was (or would be) fixed."""
        drift = await self.find_drift(launch_week)
        if dry_run:
            return drift

        for entry in drift:
            submission = await self.db.get(Submission, entry["id"])
            if submission is not None:
                await self.recompute_scores(submission)

        if drift:
            self.logger.warning("vote_tallies_reconciled", count=len(drift), launch_week=launch_week)
        return drift

    async def _lock_open_submission(self, submission_id: uuid.UUID) -> Submission:
        # FOR UPDATE serialises voters on the same submission (no-op on SQLite)
        stmt = (
            select(Submission)
            .where(Submission.id == submission_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        submission = result.scalar_one_or_none()

        if submission is None:
            raise NotFoundError("Submission", str(submission_id))
        if submission.status not in RANKED_STATUSES:
            raise IllegalStateError(
                f"Submission is {submission.status} and not open for voting"
            )
        return submission

    async def _get_vote(self, user_id: str, submission_id: uuid.UUID) -> Optional[Vote]:
        stmt = (
            select(Vote)
            .where(Vote.user_id == user_id, Vote.submission_id == submission_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _insert_vote(
        self, user_id: str, submission_id: uuid.UUID, vote_type: str
    ) -> bool:
        """INSERT ... ON CONFLICT DO NOTHING. False if the row already existed."""
        now = utcnow()
        insert = insert_for(self.db)
        stmt = (
            insert(Vote)
            .values(
                id=uuid.uuid4(),
                user_id=user_id,
                submission_id=submission_id,
                vote_type=vote_type,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "submission_id"])
            .returning(Vote.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    def _count_subquery(submission_id: uuid.UUID, vote_type: str):
        return (
            select(func.count(Vote.id))
            .where(Vote.submission_id == submission_id, Vote.vote_type == vote_type)
            .scalar_subquery()
        )
