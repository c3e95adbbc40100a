import logging
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import get_session_maker
from core.exceptions import IngestionError
from ingestion.runner import IngestionRunner
from models.base import IngestionMode

logger = logging.getLogger(__name__)

DAILY_JOB_ID = "ingestion_daily"


class IngestionScheduler:
    """
    Runs the daily refresh once a day, followed by a bootstrap sweep that
    backfills any packages still pending.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        hour: Optional[int] = None,
        minute: Optional[int] = None,
        bootstrap_pending: Optional[bool] = None
    ):
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.session_factory = session_factory
        self.hour = settings.SCHEDULER_CRON_HOUR if hour is None else hour
        self.minute = settings.SCHEDULER_CRON_MINUTE if minute is None else minute
        self.bootstrap_pending = (
            settings.SCHEDULER_BOOTSTRAP_PENDING if bootstrap_pending is None else bootstrap_pending
        )

    def _session(self) -> AsyncSession:
        factory = self.session_factory or get_session_maker()
        return factory()

    async def run_ingestion_job(self, mode: IngestionMode = IngestionMode.DAILY):
        """Job to run one ingestion pass"""
        logger.info(f"Scheduler: Starting {mode.value} ingestion job")
        async with self._session() as session:
            try:
                summary = await IngestionRunner(session).run(mode)
            except IngestionError as e:
                logger.error(f"Scheduler: {mode.value} ingestion job failed - {e}")
                return None

        logger.info(
            f"Scheduler: {mode.value} ingestion job finished - "
            f"{summary.successful} succeeded, {summary.failed} failed"
        )
        return summary

    async def run_daily_job(self):
        summary = await self.run_ingestion_job(IngestionMode.DAILY)
        if self.bootstrap_pending:
            await self.run_ingestion_job(IngestionMode.BOOTSTRAP)
        return summary

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_daily_job,
            trigger=CronTrigger(hour=self.hour, minute=self.minute, timezone="UTC"),
            id=DAILY_JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1
        )
        self.scheduler.start()
        logger.info(f"Ingestion scheduler started (daily at {self.hour:02d}:{self.minute:02d} UTC)")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Ingestion scheduler stopped")
