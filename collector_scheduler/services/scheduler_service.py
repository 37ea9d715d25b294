"""Scheduler queue consumer: applies worker run-state notifications."""

import logging
from datetime import datetime
from typing import Callable

from collector_scheduler.core import constants
from collector_scheduler.core.exceptions import MalformedMessageError
from collector_scheduler.entities.enums import RunState
from collector_scheduler.entities.notification import ServiceNotificationMessage
from collector_scheduler.entities.source_code_job import SourceCodeJob
from collector_scheduler.services.base import QueueServiceBase
from collector_scheduler.services.queue_store import RedisQueueStore
from collector_scheduler.services.scheduler_helper import SchedulerHelper
from collector_scheduler.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class SchedulerService(QueueServiceBase):
    def __init__(
        self,
        queue_store: RedisQueueStore,
        scheduler_helper: SchedulerHelper,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(queue_store, constants.SCHEDULER_QUEUE)
        self.scheduler_helper = scheduler_helper
        self.clock = clock

    def run_queue_service(self, message: ServiceNotificationMessage) -> None:
        run_state = message.run_state

        if run_state == RunState.RUNNING:
            # Worker heartbeat / registration for its session
            job_key = constants.get_state_record_identifier(
                constants.REPOSITORY_JOB_PREFIX, message.repository_state
            )
            self.queue_store.set_hash_value(
                job_key,
                message.session_key,
                SourceCodeJob(message=message, update_time=self.clock()),
            )
        elif run_state == RunState.SUCCESS:
            self.scheduler_helper.handle_successful_job(message)
        elif run_state == RunState.FAILURE:
            self.scheduler_helper.handle_failed_job(message)
        else:
            raise MalformedMessageError(
                f"Unsupported run state {run_state!r}",
                queue_name=self.queue_name,
            )
