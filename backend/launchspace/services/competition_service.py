"""Weekly competition rows: creation, status transitions and slot accounting."""

import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.config import settings
from launchspace.core.exceptions import IllegalStateError
from launchspace.core.weeks import ensure_utc, upcoming_week_starts, week_id
from launchspace.db.retry import storage_read_retry
from launchspace.models.base import utcnow
from launchspace.models.competition import Competition

logger = structlog.get_logger(__name__)

# A week runs from Monday at the start hour to the following Monday, minus 1s
WEEK_LENGTH = timedelta(days=7) - timedelta(seconds=1)


def slot_limit(plan: str) -> int:
    if plan == "standard":
        return settings.STANDARD_SLOT_LIMIT
    return settings.PREMIUM_SLOT_LIMIT


def time_left(competition: Competition, now: Optional[datetime] = None) -> Dict[str, int]:
    """Countdown to the start of an upcoming week or the end of an active one."""
    now = now or utcnow()
    if competition.status == "upcoming":
        target = ensure_utc(competition.start_date)
    else:
        target = ensure_utc(competition.end_date)

    total_ms = max(0, int((target - now).total_seconds() * 1000))
    seconds = total_ms // 1000
    return {
        "days": seconds // 86400,
        "hours": seconds % 86400 // 3600,
        "minutes": seconds % 3600 // 60,
        "seconds": seconds % 60,
        "total_ms": total_ms,
    }


class CompetitionService:
    """Service for managing weekly competitions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="competition_service")

    @storage_read_retry
    async def get_by_week(self, week: str) -> Optional[Competition]:
        result = await self.db.execute(select(Competition).where(Competition.week_id == week))
        return result.scalar_one_or_none()

    @storage_read_retry
    async def list_competitions(
        self,
        status: Optional[str] = None,
        limit: int = 20,
    ) -> List[Competition]:
        query = select(Competition).order_by(Competition.start_date.desc()).limit(limit)
        if status:
            query = query.where(Competition.status == status)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    @storage_read_retry
    async def get_current(self, now: Optional[datetime] = None) -> Optional[Competition]:
        """The active competition, falling back to the next upcoming one."""
        now = now or utcnow()
        active = await self.db.execute(
            select(Competition)
            .where(
                Competition.status == "active",
                Competition.start_date <= now,
                Competition.end_date > now,
            )
            .order_by(Competition.start_date.desc())
            .limit(1)
        )
        competition = active.scalar_one_or_none()
        if competition is not None:
            return competition

        upcoming = await self.db.execute(
            select(Competition)
            .where(Competition.status == "upcoming", Competition.start_date > now)
            .order_by(Competition.start_date.asc())
            .limit(1)
        )
        return upcoming.scalar_one_or_none()

    @storage_read_retry
    async def get_available_weeks(
        self,
        plan: str = "standard",
        now: Optional[datetime] = None,
    ) -> List[Competition]:
        """Open weeks that still have a free slot for ``plan``."""
        now = now or utcnow()
        query = (
            select(Competition)
            .where(
                Competition.status.in_(("upcoming", "active")),
                Competition.end_date > now,
                Competition.total_submissions < slot_limit(plan),
            )
            .order_by(Competition.start_date.asc())
            .limit(settings.COMPETITION_WEEKS_AHEAD)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def ensure_upcoming_weeks(
        self,
        now: Optional[datetime] = None,
        count: Optional[int] = None,
    ) -> List[str]:
        """Create the missing competitions for the next ``count`` weeks.

        Returns:
            Week ids that were created
        """
        now = now or utcnow()
        starts = upcoming_week_starts(
            now,
            count or settings.COMPETITION_WEEKS_AHEAD,
            settings.COMPETITION_START_HOUR_UTC,
        )
        wanted = {week_id(start): start for start in starts}

        result = await self.db.execute(
            select(Competition.week_id).where(Competition.week_id.in_(list(wanted)))
        )
        existing = set(result.scalars().all())

        created = []
        for week, start in wanted.items():
            if week in existing:
                continue
            self.db.add(
                Competition(
                    week_id=week,
                    start_date=start,
                    end_date=start + WEEK_LENGTH,
                    status="upcoming",
                    total_submissions=0,
                    standard_submissions=0,
                    premium_submissions=0,
                    total_votes=0,
                    top_three_ids=[],
                )
            )
            created.append(week)

        if created:
            await self.db.flush()
            self.logger.info("competitions_created", weeks=created)
        return created

    async def activate_started(self, now: Optional[datetime] = None) -> List[Competition]:
        """Flip upcoming competitions whose start has passed to active."""
        now = now or utcnow()
        result = await self.db.execute(
            select(Competition).where(
                Competition.status == "upcoming",
                Competition.start_date <= now,
                Competition.end_date > now,
            )
        )
        started = list(result.scalars().all())
        for competition in started:
            competition.status = "active"
        if started:
            await self.db.flush()
            self.logger.info("competitions_activated", weeks=[c.week_id for c in started])
        return started

    @storage_read_retry
    async def find_expired(self, now: Optional[datetime] = None) -> List[Competition]:
        """Competitions past their end that have not been completed yet."""
        now = now or utcnow()
        result = await self.db.execute(
            select(Competition)
            .where(
                Competition.status.in_(("upcoming", "active")),
                Competition.end_date <= now,
            )
            .order_by(Competition.start_date.asc())
        )
        return list(result.scalars().all())

    async def record_winners(
        self,
        week: str,
        winner_ids: Sequence[uuid.UUID],
        now: Optional[datetime] = None,
    ) -> Optional[Competition]:
        """Mark a week completed with its podium. No-op without a competition row."""
        competition = await self.get_by_week(week)
        if competition is None:
            return None

        competition.status = "completed"
        competition.completed_at = now or utcnow()
        competition.winner_id = winner_ids[0] if winner_ids else None
        competition.top_three_ids = [str(i) for i in winner_ids]
        await self.db.flush()

        self.logger.info("competition_completed", week_id=week, winners=len(winner_ids))
        return competition

    async def reserve_slot(self, week: str, plan: str) -> None:
        """Take one submission slot in a week.

        Weeks without a competition row are not slot-limited.

        Raises:
            IllegalStateError: Week is completed or full for this plan
        """
        competition = await self.get_by_week(week)
        if competition is None:
            return
        if competition.status == "completed":
            raise IllegalStateError(f"Competition {week} is already completed")

        limit = slot_limit(plan)
        plan_column = self._plan_column(plan)
        stmt = (
            update(Competition)
            .where(Competition.id == competition.id, Competition.total_submissions < limit)
            .values(
                {
                    Competition.total_submissions: Competition.total_submissions + 1,
                    plan_column: plan_column + 1,
                }
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            raise IllegalStateError(f"Competition {week} has no free {plan} slots")

        self.logger.debug("slot_reserved", week_id=week, plan=plan)

    async def release_slot(self, week: str, plan: str) -> None:
        plan_column = self._plan_column(plan)
        stmt = (
            update(Competition)
            .where(
                Competition.week_id == week,
                Competition.total_submissions > 0,
                plan_column > 0,
            )
            .values(
                {
                    Competition.total_submissions: Competition.total_submissions - 1,
                    plan_column: plan_column - 1,
                }
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)

    async def add_votes(self, week: str, delta: int) -> None:
        """Adjust a week's vote counter; display only, never used for ranking."""
        if not delta:
            return
        stmt = (
            update(Competition)
            .where(Competition.week_id == week, Competition.total_votes + delta >= 0)
            .values(total_votes=Competition.total_votes + delta)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)

    @staticmethod
    def _plan_column(plan: str):
        if plan == "standard":
            return Competition.standard_submissions
        return Competition.premium_submissions
