"""APScheduler-based fixed-interval background jobs."""

from typing import Any, Callable, Coroutine, Dict, List

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from usage_analytics.logger import logger


class PeriodicJobs:
    """
    Runs coroutine callbacks on fixed intervals on the service's event loop.

    Jobs never overlap with themselves; a tick that is still running when the
    next one is due is skipped rather than queued.

    Example:
        jobs = PeriodicJobs()
        jobs.add_interval_job(analytics.refresh_metrics, seconds=10, job_id="analytics-refresh")
        jobs.start()
    """

    def __init__(self):
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._intervals: Dict[str, float] = {}

    def add_interval_job(
        self,
        callback: Callable[[], Coroutine[Any, Any, Any]],
        seconds: float,
        job_id: str,
    ) -> str:
        """
        Register a recurring job.

        Args:
            callback: Coroutine function taking no arguments
            seconds: Interval between runs
            job_id: Stable job identifier

        Returns:
            The job ID
        """
        self._scheduler.add_job(
            callback,
            IntervalTrigger(seconds=seconds),
            id=job_id,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._intervals[job_id] = seconds
        logger.info(f"Scheduled job '{job_id}' every {seconds}s")
        return job_id

    @property
    def job_ids(self) -> List[str]:
        return list(self._intervals)

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info(f"Background scheduler started with {len(self._intervals)} job(s)")

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Background scheduler stopped")
