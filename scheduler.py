import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from database import session_scope
from sessions import SessionStore


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self) -> None:
        self.scheduler = BackgroundScheduler(timezone="UTC")

    def _run_job(self, source: str = "manual") -> int:
        logger.info(f"session_purge: source={source}")
        with session_scope() as session:
            purged = SessionStore(session).purge_expired()
        logger.info(f"session_purge: source={source} sessions_purged={purged}")
        return purged

    def start(self) -> None:
        trigger = IntervalTrigger(hours=1)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["hourly"],
            id="session_purge_hourly",
            replace_existing=True,
            misfire_grace_time=300,
        )

        self.scheduler.start()
        logger.info("Scheduler started with hourly session purge")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
