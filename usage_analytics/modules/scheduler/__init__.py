"""
Background job scheduling.

Provides:
- PeriodicJobs: APScheduler wrapper running the analytics refresh and
  time-series rollup on fixed intervals
"""

from usage_analytics.modules.scheduler.periodic_jobs import PeriodicJobs

__all__ = ["PeriodicJobs"]
