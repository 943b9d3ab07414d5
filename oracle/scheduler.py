"""
Scheduler module for periodic oracle sync passes.

This module uses APScheduler to run the market sync pass at a configurable
interval. It handles overlap prevention, job event logging, and graceful
shutdown.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

import pytz
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from oracle.config import Config
from oracle.market_oracle import SyncResult

# Configure module logger
logger = logging.getLogger(__name__)


class OracleScheduler:
    """
    Scheduler for periodic oracle sync passes.

    Runs one sync function at a fixed interval. A pass that is still running
    when the next one is due causes that next one to be skipped.
    """

    def __init__(self):
        """Initialize the scheduler."""
        self.scheduler: Optional[BackgroundScheduler] = None
        self.sync_function: Optional[Callable[[], SyncResult]] = None
        self.interval_minutes: Optional[int] = None
        self.is_running = False
        self.last_result: Optional[SyncResult] = None
        self._execution_lock = threading.Lock()
        self._job_id = "oracle_sync_job"

    def start(
        self,
        sync_function: Callable[[], SyncResult],
        interval_minutes: Optional[int] = None
    ) -> bool:
        """
        Start the scheduler with the given sync function.

        Args:
            sync_function: Callable that runs one sync pass
            interval_minutes: Minutes between passes. If None, uses Config.SYNC_INTERVAL_MINUTES

        Returns:
            True if scheduler started successfully, False otherwise
        """
        if self.is_running:
            logger.warning("Scheduler is already running")
            return False

        if not callable(sync_function):
            logger.error("sync_function must be callable")
            return False

        if interval_minutes is None:
            interval_minutes = Config.SYNC_INTERVAL_MINUTES

        if interval_minutes < 1:
            logger.error(f"Invalid interval_minutes: {interval_minutes}. Must be >= 1")
            return False

        self.sync_function = sync_function
        self.interval_minutes = interval_minutes

        timezone_name = Config.SCHEDULER_TIMEZONE
        try:
            tz = pytz.timezone(timezone_name)
        except pytz.UnknownTimeZoneError:
            logger.error(f"Unknown scheduler timezone: {timezone_name}")
            return False

        self.scheduler = BackgroundScheduler(timezone=tz)
        self.scheduler.add_listener(
            self._on_job_executed,
            EVENT_JOB_EXECUTED | EVENT_JOB_ERROR
        )
        self.scheduler.add_job(
            func=self.run_once,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id=self._job_id,
            name="Oracle Sync",
            replace_existing=True,
            max_instances=1  # Prevent overlapping runs
        )
        self.scheduler.start()
        self.is_running = True

        logger.info(f"Scheduler started with {interval_minutes} minute interval")
        return True

    def stop(self, wait: bool = True) -> bool:
        """
        Stop the scheduler gracefully.

        Args:
            wait: Whether to wait for a running pass to complete

        Returns:
            True if scheduler stopped, False if it was not running
        """
        if not self.is_running or not self.scheduler:
            logger.warning("Scheduler is not running")
            return False

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=wait)
        self.is_running = False
        self.scheduler = None

        logger.info("Scheduler stopped successfully")
        return True

    def run_once(self) -> Optional[SyncResult]:
        """
        Run one sync pass unless another one is in progress.

        Failures are logged and swallowed so the schedule keeps running.

        Returns:
            SyncResult of the pass, or None if skipped or failed
        """
        if not self._execution_lock.acquire(blocking=False):
            logger.warning("Oracle sync skipped: previous pass still in progress")
            return None

        start_time = datetime.now(timezone.utc)

        try:
            if not self.sync_function:
                logger.error("Sync function not set")
                return None

            logger.info(f"Oracle sync started at {start_time.isoformat()}")
            result = self.sync_function()
            self.last_result = result

            duration = (datetime.now(timezone.utc) - start_time).total_seconds()
            logger.info(
                f"Oracle sync completed in {duration:.2f} seconds "
                f"({len(result.markets)} markets, updated: {result.updated})"
            )
            return result

        except Exception as e:
            duration = (datetime.now(timezone.utc) - start_time).total_seconds()
            logger.error(f"Oracle sync failed after {duration:.2f} seconds: {e}", exc_info=True)
            return None

        finally:
            self._execution_lock.release()

    def _on_job_executed(self, event) -> None:
        """Log APScheduler job execution events."""
        if event.exception:
            logger.error(f"Job {event.job_id} raised an exception: {event.exception}")
        else:
            logger.debug(f"Job {event.job_id} executed successfully")

    def get_next_run_time(self) -> Optional[datetime]:
        """
        Get the next scheduled run time.

        Returns:
            Next run time as datetime, or None if scheduler is not running
        """
        if not self.is_running or not self.scheduler:
            return None

        job = self.scheduler.get_job(self._job_id)
        return job.next_run_time if job else None

    def is_job_running(self) -> bool:
        """True while a sync pass holds the execution lock."""
        return self._execution_lock.locked()

    def get_status(self) -> dict:
        """
        Get current scheduler status.

        Returns:
            Dictionary with scheduler status information
        """
        next_run = self.get_next_run_time()
        return {
            "is_running": self.is_running,
            "has_sync_function": self.sync_function is not None,
            "job_running": self.is_job_running(),
            "next_run_time": next_run.isoformat() if next_run else None,
            "interval_minutes": self.interval_minutes if self.is_running else None,
        }


# Global scheduler instance
_scheduler_instance: Optional[OracleScheduler] = None


def start_scheduler(
    sync_callable: Callable[[], SyncResult],
    interval_minutes: Optional[int] = None
) -> bool:
    """
    Start the global scheduler instance.

    Args:
        sync_callable: Callable that runs one sync pass
        interval_minutes: Minutes between passes. If None, uses Config.SYNC_INTERVAL_MINUTES

    Returns:
        True if scheduler started successfully, False otherwise
    """
    global _scheduler_instance

    if _scheduler_instance is None:
        _scheduler_instance = OracleScheduler()

    return _scheduler_instance.start(sync_callable, interval_minutes)


def stop_scheduler(wait: bool = True) -> bool:
    """
    Stop the global scheduler instance.

    Args:
        wait: Whether to wait for a running pass to complete

    Returns:
        True if scheduler stopped successfully, False otherwise
    """
    if _scheduler_instance is None:
        logger.warning("Scheduler instance does not exist")
        return False

    return _scheduler_instance.stop(wait)


def get_scheduler() -> Optional[OracleScheduler]:
    """Get the global scheduler instance, or None if not initialized."""
    return _scheduler_instance


def get_scheduler_status() -> dict:
    """
    Get status of the global scheduler instance.

    Returns:
        Dictionary with scheduler status information
    """
    if _scheduler_instance is None:
        return {
            "is_running": False,
            "has_sync_function": False,
            "job_running": False,
            "next_run_time": None,
            "interval_minutes": None,
        }

    return _scheduler_instance.get_status()
