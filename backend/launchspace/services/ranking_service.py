"""Ranking and competition service.

Thin orchestration over the submission, vote and competition services:
submitting into a week, voting, weekly leaderboards, winner selection and
the scheduled competition lifecycle.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.core.exceptions import IllegalStateError, NotFoundError, ValidationError
from launchspace.core.weeks import current_week_id, ensure_utc, is_valid_week_id, week_id
from launchspace.db.retry import storage_read_retry
from launchspace.db.upsert import insert_for
from launchspace.models.base import utcnow
from launchspace.models.submission import RANKED_STATUSES, Submission
from launchspace.models.user import User
from launchspace.schemas.submission import SubmissionCreateRequest
from launchspace.services.competition_service import CompetitionService
from launchspace.services.submission_service import SubmissionFilters, SubmissionService
from launchspace.services.vote_service import VoteOutcome, VoteResult, VoteService

logger = structlog.get_logger(__name__)

PODIUM_SIZE = 3

# Submissions visible to anyone; the rest only to their submitter
PUBLIC_STATUSES = RANKED_STATUSES + ("archived",)


def _require_week_id(value: str) -> None:
    if not is_valid_week_id(value):
        raise ValidationError(
            f"Invalid week id '{value}'",
            errors=[{"field": "week_id", "message": "Expected YYYY-W##"}],
        )


class RankingService:
    """Submit, vote, rank and close weekly competitions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.submissions = SubmissionService(db)
        self.votes = VoteService(db)
        self.competitions = CompetitionService(db)
        self.logger = logger.bind(service="ranking_service")

    async def submit_app(
        self,
        data: Union[SubmissionCreateRequest, Dict[str, Any]],
        user_id: str,
        now: Optional[datetime] = None,
    ) -> Submission:
        """Create a pending submission in its launch week.

        Takes a slot in the week's competition when one exists.
        """
        now = now or utcnow()
        payload = self.submissions.validate_create(data)
        week = payload.launch_week or week_id(now)
        payload = payload.model_copy(update={"launch_week": week})

        await self.competitions.reserve_slot(week, payload.plan)
        submission = await self.submissions.create_submission(payload, submitted_by=user_id, now=now)
        await self._bump_user(user_id, submissions=1)
        return submission

    async def withdraw_app(self, submission_id: uuid.UUID, user_id: Optional[str]) -> Submission:
        """Delete a submission and hand its slot back to the week."""
        submission = await self.submissions.delete_submission(submission_id, user_id=user_id)
        await self.competitions.release_slot(submission.launch_week, submission.plan)
        await self._bump_user(submission.submitted_by, submissions=-1)
        return submission

    async def vote_for_app(
        self,
        user_id: str,
        submission_id: uuid.UUID,
        vote_type: str,
    ) -> VoteResult:
        result = await self.votes.cast_vote(user_id, submission_id, vote_type)
        if result.outcome == VoteOutcome.CREATED:
            await self._bump_user(user_id, votes=1)
            await self.competitions.add_votes(result.submission.launch_week, 1)
        return result

    async def unvote_app(self, user_id: str, submission_id: uuid.UUID) -> VoteResult:
        result = await self.votes.retract_vote(user_id, submission_id)
        if result.outcome == VoteOutcome.RETRACTED:
            await self._bump_user(user_id, votes=-1)
            await self.competitions.add_votes(result.submission.launch_week, -1)
        return result

    async def get_app_details(
        self,
        slug: str,
        viewer_id: Optional[str] = None,
    ) -> Tuple[Submission, Optional[str]]:
        """Load a submission by slug with the viewer's vote.

        Views by anyone but the submitter bump the view counter.

        Raises:
            NotFoundError: Unknown slug, or a non-public app viewed by someone else
        """
        submission = await self.submissions.get_by_slug(slug)
        is_owner = submission is not None and viewer_id == submission.submitted_by
        if submission is None or (submission.status not in PUBLIC_STATUSES and not is_owner):
            raise NotFoundError("App", slug)

        if not is_owner:
            await self.submissions.increment_views(submission.id)
            await self.db.refresh(submission)

        user_vote = None
        if viewer_id:
            user_vote = await self.votes.get_user_vote(viewer_id, submission.id)
        return submission, user_vote

    @storage_read_retry
    async def get_week_ranking(self, launch_week: str) -> List[Tuple[int, Submission]]:
        """Every open submission of a week with its 1-based rank."""
        _require_week_id(launch_week)
        query = (
            select(Submission)
            .where(Submission.launch_week == launch_week, Submission.status.in_(RANKED_STATUSES))
            .order_by(Submission.ranking_score.desc(), Submission.created_at.desc())
        )
        result = await self.db.execute(query)
        return list(enumerate(result.scalars().all(), start=1))

    async def get_current_week_ranking(self, now: Optional[datetime] = None) -> List[Tuple[int, Submission]]:
        return await self.get_week_ranking(current_week_id(now))

    async def select_weekly_winners(
        self,
        launch_week: str,
        now: Optional[datetime] = None,
    ) -> List[Submission]:
        """Flag the top three of a finished week as winners.

        Winners get positions 1-3 and a dofollow link. Re-running for the
        same week replaces the previous podium.

        Raises:
            ValidationError: Malformed week id
            IllegalStateError: The week has not finished yet
        """
        now = now or utcnow()
        _require_week_id(launch_week)

        competition = await self.competitions.get_by_week(launch_week)
        if competition is not None:
            if ensure_utc(competition.end_date) > now:
                raise IllegalStateError(f"Competition {launch_week} has not ended yet")
        elif launch_week >= current_week_id(now):
            raise IllegalStateError(f"Week {launch_week} has not ended yet")

        ranking = await self.get_week_ranking(launch_week)

        await self.db.execute(
            update(Submission)
            .where(Submission.launch_week == launch_week, Submission.weekly_winner.is_(True))
            .values(weekly_winner=False, weekly_position=None)
            .execution_options(synchronize_session="fetch")
        )

        winners = []
        for position, submission in ranking[:PODIUM_SIZE]:
            submission.weekly_winner = True
            submission.weekly_position = position
            if submission.link_type != "dofollow":
                submission.link_type = "dofollow"
                submission.dofollow_reason = "weekly_winner"
                submission.dofollow_awarded_at = now
            winners.append(submission)
        await self.db.flush()

        await self.competitions.record_winners(launch_week, [s.id for s in winners], now=now)

        self.logger.info(
            "weekly_winners_selected",
            week_id=launch_week,
            candidates=len(ranking),
            winners=[s.slug for s in winners],
        )
        return winners

    async def run_competition_lifecycle(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Daily housekeeping for weekly competitions.

        Creates missing upcoming weeks, activates started weeks (their
        approved apps go live) and completes ended weeks with winners.
        Each step, and each expired week, runs in its own savepoint: a
        failure is rolled back, logged and reported without stopping the
        others.
        """
        now = now or utcnow()
        summary: Dict[str, Any] = {
            "timestamp": now,
            "created": [],
            "activated": [],
            "completed": [],
            "errors": [],
        }

        try:
            async with self.db.begin_nested():
                created = await self.competitions.ensure_upcoming_weeks(now)
            summary["created"] = created
        except Exception as e:
            self._record_failure(summary, "create_upcoming", e)

        try:
            activated = []
            async with self.db.begin_nested():
                for competition in await self.competitions.activate_started(now):
                    promoted = await self.submissions.go_live_for_week(competition.week_id, now)
                    activated.append({"week_id": competition.week_id, "apps_live": promoted})
            summary["activated"] = activated
        except Exception as e:
            self._record_failure(summary, "activate_started", e)

        try:
            expired = [c.week_id for c in await self.competitions.find_expired(now)]
        except Exception as e:
            self._record_failure(summary, "complete_expired", e)
            expired = []

        for week in expired:
            try:
                async with self.db.begin_nested():
                    winners = await self.select_weekly_winners(week, now)
                    slugs = [s.slug for s in winners]
                summary["completed"].append({"week_id": week, "winners": slugs})
            except Exception as e:
                self._record_failure(summary, "complete_expired", e, week_id=week)

        self.logger.info(
            "competition_lifecycle_completed",
            created=len(summary["created"]),
            activated=len(summary["activated"]),
            completed=len(summary["completed"]),
            errors=len(summary["errors"]),
        )
        return summary

    @storage_read_retry
    async def platform_stats(self, now: Optional[datetime] = None) -> Dict[str, int]:
        total_apps = await self.submissions.count(SubmissionFilters(status=RANKED_STATUSES))
        this_week = await self.submissions.count(
            SubmissionFilters(status=RANKED_STATUSES, launch_week=current_week_id(now))
        )
        total_users = (await self.db.execute(select(func.count(User.id)))).scalar_one()
        total_votes = await self.votes.count_votes()
        return {
            "total_apps": total_apps,
            "total_users": total_users,
            "this_week_apps": this_week,
            "total_votes": total_votes,
        }

    def _record_failure(
        self,
        summary: Dict[str, Any],
        step: str,
        error: Exception,
        week_id: Optional[str] = None,
    ) -> None:
        self.logger.error(
            "competition_lifecycle_step_failed", step=step, week_id=week_id, error=str(error), exc_info=True
        )
        failure = {"step": step, "error": str(error)}
        if week_id:
            failure["week_id"] = week_id
        summary["errors"].append(failure)

    async def _bump_user(self, user_id: str, submissions: int = 0, votes: int = 0) -> None:
        """Upsert the user's denormalised counters."""
        now = utcnow()
        insert = insert_for(self.db)
        stmt = insert(User).values(
            id=user_id,
            total_submissions=max(submissions, 0),
            total_votes=max(votes, 0),
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[User.id],
            set_={
                "total_submissions": User.total_submissions + submissions,
                "total_votes": User.total_votes + votes,
                "updated_at": now,
            },
        )
        await self.db.execute(stmt)
