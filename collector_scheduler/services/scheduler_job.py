"""
Scheduler Job - the tick-driven due-date decision loop.

For every active repository configuration, one tick:
1. Reads the repository's live job bookkeeping from Redis.
2. If a RUNNING entry exists:
   - any stale entry (update_time + max_timeout in the past) times out every
     entry, which goes through the failed-job retry/dead-letter path;
   - otherwise a healthy run is in progress and nothing is dispatched.
3. Otherwise, if the cron schedule says the repository is due, dispatches a
   new session.

Each repository is scheduled under its own Redis lock and error boundary, so
two scheduler instances never dispatch the same repository together and one
bad repository does not abort the rest of the tick.
"""

from __future__ import annotations

import contextvars
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from croniter import croniter

from collector_scheduler.config import SchedulerSettings
from collector_scheduler.core import constants
from collector_scheduler.core.events import track_event, track_exception
from collector_scheduler.core.exceptions import ScheduleConfigurationError
from collector_scheduler.core.tracing import TracingContext
from collector_scheduler.entities.enums import ScheduleType
from collector_scheduler.entities.repository_configuration import RepositoryConfiguration
from collector_scheduler.entities.repository_state import RepositoryState
from collector_scheduler.entities.source_code_job import SourceCodeJob
from collector_scheduler.repositories.repository_configuration import (
    RepositoryConfigurationRepository,
)
from collector_scheduler.repositories.repository_state import RepositoryStateRepository
from collector_scheduler.services.base import ServiceBase
from collector_scheduler.services.queue_store import RedisQueueStore
from collector_scheduler.services.scheduler_helper import SchedulerHelper
from collector_scheduler.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class RepositoryOutcome(str, Enum):
    """What one tick did for one repository."""

    SCHEDULED = "scheduled"
    RUNNING = "running"
    TIMED_OUT = "timed_out"
    NOT_DUE = "not_due"
    LOCKED = "locked"
    ERROR = "error"


@dataclass
class SchedulerTickResult:
    started_at: datetime
    outcomes: Dict[str, RepositoryOutcome] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def record(self, record_id: str, outcome: RepositoryOutcome, error: Optional[str] = None) -> None:
        self.outcomes[record_id] = outcome
        if error:
            self.errors[record_id] = error

    def summary(self) -> Dict[str, int]:
        counts = {outcome.value: 0 for outcome in RepositoryOutcome}
        for outcome in self.outcomes.values():
            counts[outcome.value] += 1
        counts["total"] = len(self.outcomes)
        return counts


def next_occurrence(cron_expression: str, after: datetime) -> datetime:
    """
    First cron occurrence strictly after `after` (UTC).

    Raises:
        ScheduleConfigurationError: if the expression cannot be parsed
    """
    try:
        return croniter(cron_expression, ensure_utc(after)).get_next(datetime)
    except (ValueError, KeyError) as e:
        raise ScheduleConfigurationError(
            f"Cannot parse cron schedule {cron_expression!r}: {e}",
            schedule_type=ScheduleType.CRON.value,
            value=cron_expression,
        ) from e


class SchedulerJob(ServiceBase):
    def __init__(
        self,
        queue_store: RedisQueueStore,
        config_repo: RepositoryConfigurationRepository,
        state_repo: RepositoryStateRepository,
        scheduler_helper: SchedulerHelper,
        scheduler_settings: SchedulerSettings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.queue_store = queue_store
        self.config_repo = config_repo
        self.state_repo = state_repo
        self.scheduler_helper = scheduler_helper
        self.scheduler_settings = scheduler_settings
        self.timeout_period = scheduler_settings.max_timeout
        self.clock = clock

    def run(self) -> bool:
        self.run_scheduler()
        return False

    def run_scheduler(self) -> SchedulerTickResult:
        """Schedule every active repository once."""
        result = SchedulerTickResult(started_at=self.clock())
        track_event("Running scheduler", {})
        try:
            active_repos, invalid = self.config_repo.find_active(
                self.scheduler_settings.configuration_query
            )
        except Exception as e:
            track_exception(e, "Error in run_scheduler")
            raise

        # Unreadable configurations are skipped, the rest of the tick goes on
        for record_id, error in invalid.items():
            track_event("Invalid repository configuration", {"Id": record_id, "Error": error})
            result.record(record_id, RepositoryOutcome.ERROR, error)

        properties = {"ActiveRepositoryCount": len(active_repos)}
        track_event("Scheduling repo collection", properties)

        if self.scheduler_settings.max_concurrency > 1 and len(active_repos) > 1:
            # Each worker thread starts from a copy of the tick's tracing context
            contexts = [contextvars.copy_context() for _ in active_repos]
            with ThreadPoolExecutor(max_workers=self.scheduler_settings.max_concurrency) as pool:
                outcomes = list(
                    pool.map(
                        lambda ctx, repo: ctx.run(self._schedule_isolated, repo),
                        contexts,
                        active_repos,
                    )
                )
        else:
            outcomes = [self._schedule_isolated(repo) for repo in active_repos]

        for repo_config, (outcome, error) in zip(active_repos, outcomes):
            result.record(repo_config.record_id(), outcome, error)

        track_event("Repo collection scheduled", {**properties, **result.summary()})
        return result

    def _schedule_isolated(
        self, repo_config: RepositoryConfiguration
    ) -> tuple[RepositoryOutcome, Optional[str]]:
        """Schedule one repository under its lock, turning exceptions into an ERROR outcome."""
        outer_context = TracingContext.get()
        TracingContext.set(
            organization=repo_config.organization_name,
            repository_id=repo_config.repository_id,
        )
        lock_key = constants.get_record_identifier(
            constants.LOCK_PREFIX, repo_config.organization_name, repo_config.repository_id
        )
        try:
            lock = self.queue_store.acquire_lock(lock_key, self.scheduler_settings.lock_ttl_seconds)
            if lock is None:
                track_event(
                    "Repository locked by another scheduler",
                    {"RepositoryId": repo_config.repository_id},
                )
                return RepositoryOutcome.LOCKED, None
            try:
                return self.schedule_repository(repo_config), None
            finally:
                self.queue_store.release_lock(lock)
        except Exception as e:
            # schedule_repository already reported it
            logger.warning(f"Skipping {repo_config.record_id()} this tick: {e}")
            return RepositoryOutcome.ERROR, str(e)
        finally:
            TracingContext.restore(outer_context)

    def schedule_repository(self, repo_config: RepositoryConfiguration) -> RepositoryOutcome:
        try:
            job_key = constants.get_record_identifier(
                constants.REPOSITORY_JOB_PREFIX,
                repo_config.organization_name,
                repo_config.repository_id,
            )
            jobs: List[SourceCodeJob] = self.queue_store.get_hash_values(job_key, SourceCodeJob)

            running = [job for job in jobs if job.is_running]
            if running:
                now = self.clock()
                if any(job.is_stale(now, self.timeout_period) for job in running):
                    for job in jobs:
                        track_event(
                            "JobTimeout",
                            {
                                "RepositoryId": repo_config.repository_id,
                                "SessionId": job.message.session_key,
                            },
                        )
                        self.scheduler_helper.handle_failed_job(job.message)
                    return RepositoryOutcome.TIMED_OUT

                track_event(
                    "Previous job is still running, do not schedule new job.",
                    {"RepositoryId": repo_config.repository_id},
                )
                return RepositoryOutcome.RUNNING

            if not self.should_schedule(repo_config):
                track_event("Not scheduling repository", {"RepositoryId": repo_config.repository_id})
                return RepositoryOutcome.NOT_DUE

            state_key = constants.get_record_identifier(
                constants.REPOSITORY_STATE_PREFIX,
                repo_config.organization_name,
                repo_config.repository_id,
            )
            repo_state = self.state_repo.find_by_id(state_key) or RepositoryState(
                id=state_key,
                organization_name=repo_config.organization_name,
                repository_id=repo_config.repository_id,
                repository_url=repo_config.repository_url,
            )
            self.scheduler_helper.add_worker_message(repo_state)
            return RepositoryOutcome.SCHEDULED
        except Exception as e:
            track_exception(
                e, "Error in schedule_repository", {"RepositoryId": repo_config.repository_id}
            )
            raise

    def should_schedule(self, repo_config: RepositoryConfiguration) -> bool:
        """
        Due-date decision.

        Never-completed repositories are due immediately. Otherwise only Cron
        schedules are evaluated: due once now reaches the first occurrence
        after the last completed collection. Unsupported schedule types and
        unparsable cron expressions are never due.
        """
        try:
            metadata = self.scheduler_helper.handle_repository_metadata(
                repo_config.organization_name, repo_config.repository_id
            )
            last_end = metadata.last_collection_end_date_time

            if last_end is None:
                return True

            schedule = repo_config.repository_schedule
            if schedule.type != ScheduleType.CRON.value:
                logger.warning(
                    f"Unsupported schedule type {schedule.type!r} for {repo_config.record_id()}"
                )
                return False

            try:
                next_run = next_occurrence(schedule.value, last_end)
            except ScheduleConfigurationError as e:
                track_exception(e, "Cannot parse cron schedule.", {"RepositoryId": repo_config.repository_id})
                return False

            return self.clock() >= next_run
        except Exception as e:
            track_exception(e, "Error in should_schedule", {"RepositoryId": repo_config.repository_id})
            raise
