import logging
import threading
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from savings_tracker.config import validate_cron
from savings_tracker.services.materialization_service import run_materialization_cycle

JOB_ID = "materialize-recurring"


class MaterializationScheduler:
    """Runs the materialization cycle on a cron schedule, one tick at a time.

    Timed ticks and manual ``run_once`` calls share a lock; a tick that finds
    another one in flight is skipped rather than queued.
    """

    def __init__(self, config, notifier=None, cycle=run_materialization_cycle):
        self.config = config
        self.notifier = notifier
        self.cycle = cycle
        self.cron = validate_cron(config.scheduler.cron)
        self._lock = threading.Lock()
        self._scheduler = None
        self.last_run_at = None
        self.last_result = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self):
        if self.running:
            logging.warning("Scheduler already running")
            return

        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self._tick,
            CronTrigger.from_crontab(self.cron),
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logging.info(f"Scheduler initialized with cron: {self.cron}")

    def stop(self):
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logging.info("Scheduler stopped")

    def run_once(self, today=None):
        """Run one cycle now. Returns None if another cycle is still running."""
        if not self._lock.acquire(blocking=False):
            logging.warning("Materialization cycle already in progress; skipping")
            return None
        try:
            result = self.cycle(
                today=today,
                notifier=self.notifier,
                db_path=self.config.database_path,
            )
            self.last_run_at = datetime.now()
            self.last_result = result
            return result
        finally:
            self._lock.release()

    def _tick(self):
        try:
            self.run_once()
        except Exception as e:
            logging.error(f"Scheduled job error: {e}")

    def next_run_time(self):
        if not self.running:
            return None
        job = self._scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def status(self):
        next_run = self.next_run_time()
        return {
            "enabled": self.config.scheduler.enabled,
            "running": self.running,
            "cron": self.cron,
            "busy": self._lock.locked(),
            "next_run_time": next_run.isoformat() if next_run else None,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_result": {
                "processed": len(self.last_result.processed),
                "errors": len(self.last_result.errors),
            } if self.last_result else None,
        }
