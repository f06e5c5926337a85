import asyncio
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker
from core.config import settings
from core.database import build_engine, build_session_maker
from core.exceptions import ETLException
from reconciliation.runner import ReconciliationRunner

logger = logging.getLogger(__name__)


class ReconciliationScheduler:
    """
    Runs reconciliation on a fixed interval.

    ``run_lock`` is held for the whole of every run started in this process,
    scheduled or manual, so two runs never race on the same staging rows.
    ``max_instances=1`` keeps the job itself from stacking up. Separate
    processes must not share a database.
    """

    def __init__(self, interval_minutes: int = None, session_maker: async_sessionmaker = None):
        self.scheduler = AsyncIOScheduler()
        self.interval_minutes = interval_minutes or settings.RECONCILIATION_INTERVAL_MINUTES
        self.engine = None
        if session_maker is None:
            self.engine = build_engine(settings.DATABASE_URL)
            session_maker = build_session_maker(self.engine)
        self.SessionLocal = session_maker
        self.run_lock = asyncio.Lock()

    async def run_reconciliation_job(self):
        """Job body: one reconciliation run in a fresh session"""
        if self.run_lock.locked():
            logger.info("Scheduler: a reconciliation run is already in progress, skipping")
            return

        async with self.run_lock:
            logger.info("Scheduler: starting reconciliation run")
            async with self.SessionLocal() as session:
                try:
                    result = await ReconciliationRunner(session).run()
                    logger.info(f"Scheduler: run {result.run_id} finished")
                except ETLException as e:
                    # Already sealed FAILED and logged by the runner
                    logger.error(f"Scheduler: reconciliation run failed - {e.message}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_reconciliation_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="order_reconciliation",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        logger.info(f"Reconciliation scheduler started (every {self.interval_minutes} min)")

    def stop(self):
        self.scheduler.shutdown()
        logger.info("Reconciliation scheduler stopped")
