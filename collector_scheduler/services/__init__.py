"""Scheduler services"""

from .scheduler_helper import SchedulerHelper
from .scheduler_job import RepositoryOutcome, SchedulerJob, SchedulerTickResult
from .scheduler_service import SchedulerService

__all__ = [
    "SchedulerHelper",
    "SchedulerJob",
    "SchedulerService",
    "SchedulerTickResult",
    "RepositoryOutcome",
]
