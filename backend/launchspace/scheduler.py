"""APScheduler-based competition scheduler.

Runs the competition lifecycle once a day, a few minutes after the weekly
start hour, so new weeks open and ended weeks close without an external
cron. ``GET /api/v1/cron/competitions`` runs the same job on demand.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from launchspace.config import settings
from launchspace.services.cache_service import get_cache_service, invalidate_apps_cache
from launchspace.services.ranking_service import RankingService

logger = structlog.get_logger(__name__)

LIFECYCLE_JOB_ID = "competition_lifecycle"


class CompetitionScheduler:
    """Manages the daily competition lifecycle job."""

    def __init__(self, db_session_factory: async_sessionmaker[AsyncSession]):
        self.db_session_factory = db_session_factory
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="competition_scheduler")

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.info("scheduler_started")
        else:
            self.logger.warning("scheduler_already_running")

    def stop(self) -> None:
        """Stop the scheduler, waiting for a running job to finish."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    def add_lifecycle_job(self, minute: int = 5) -> Job:
        """Schedule the lifecycle daily at COMPETITION_START_HOUR_UTC:``minute``."""
        trigger = CronTrigger(
            hour=settings.COMPETITION_START_HOUR_UTC,
            minute=minute,
            timezone="UTC",
        )
        job = self.scheduler.add_job(
            func=self._run_lifecycle_wrapper,
            trigger=trigger,
            id=LIFECYCLE_JOB_ID,
            name="Competition lifecycle",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info(
            "lifecycle_job_added",
            next_run=job.next_run_time.isoformat() if job.next_run_time else None,
        )
        return job

    async def run_lifecycle(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Run one lifecycle pass in its own transaction."""
        async with self.db_session_factory() as db:
            try:
                summary = await RankingService(db).run_competition_lifecycle(now)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        await invalidate_apps_cache(get_cache_service())
        return summary

    async def _run_lifecycle_wrapper(self) -> None:
        """Entry point for APScheduler; failures are logged, never raised."""
        started = datetime.now(timezone.utc)
        try:
            summary = await self.run_lifecycle(started)
            self.logger.info(
                "lifecycle_job_completed",
                duration_ms=int((datetime.now(timezone.utc) - started).total_seconds() * 1000),
                errors=len(summary["errors"]),
            )
        except Exception as e:
            self.logger.error("lifecycle_job_failed", error=str(e), exc_info=True)
