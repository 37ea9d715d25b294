"""
Scheduler Helper - every state-mutating step of a repository's run lifecycle.

Owns writes to:
- RepositoryMetadata (Redis cached copy + MongoDB)
- RepositoryState (MongoDB)
- Job bookkeeping hash and retry counter (Redis)
- Session/global job caches (Redis)

Errors from MongoDB or Redis are reported and re-raised; callers decide what
to do with the surrounding tick or message.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from collector_scheduler.config import SchedulerSettings
from collector_scheduler.core import constants
from collector_scheduler.core.events import track_event, track_exception
from collector_scheduler.entities.enums import RunState
from collector_scheduler.entities.notification import ServiceNotificationMessage
from collector_scheduler.entities.repository_metadata import RepositoryMetadata
from collector_scheduler.entities.repository_state import RepositoryState
from collector_scheduler.entities.source_code_job import SourceCodeJob
from collector_scheduler.repositories.repository_metadata import RepositoryMetadataRepository
from collector_scheduler.repositories.repository_state import RepositoryStateRepository
from collector_scheduler.services.job_cache import RedisJobCacheFactory
from collector_scheduler.services.queue_store import RedisQueueStore
from collector_scheduler.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class SchedulerHelper:
    def __init__(
        self,
        queue_store: RedisQueueStore,
        state_repo: RepositoryStateRepository,
        metadata_repo: RepositoryMetadataRepository,
        cache_factory: RedisJobCacheFactory,
        scheduler_settings: SchedulerSettings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.queue_store = queue_store
        self.state_repo = state_repo
        self.metadata_repo = metadata_repo
        self.cache_factory = cache_factory
        self.max_reruns = scheduler_settings.max_reruns
        self.clock = clock

    def handle_repository_metadata(
        self,
        organization_name: str,
        repository_id: str,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> RepositoryMetadata:
        """
        Read (or create) a repository's metadata and apply the given timestamps.

        The Redis copy is read first since it carries begin times stamped by
        dispatches that have not been persisted yet; MongoDB is the fallback.
        When the record is new or a timestamp was supplied, the Redis copy is
        rewritten. MongoDB is never written here: callers persist explicitly.
        """
        key = constants.get_record_identifier(
            constants.REPOSITORY_METADATA_PREFIX, organization_name, repository_id
        )
        metadata = self.queue_store.get_value(key, RepositoryMetadata)
        if metadata is None:
            metadata = self.metadata_repo.find_by_id(key)

        update_cache = False
        if metadata is None:
            update_cache = True
            metadata = RepositoryMetadata(
                id=key,
                organization_name=organization_name,
                repository_id=repository_id,
            )

        if start_time is not None:
            update_cache = True
            metadata.last_collection_begin_date_time = start_time

        if end_time is not None:
            update_cache = True
            metadata.last_collection_end_date_time = end_time

        if update_cache:
            success = self.queue_store.set_value(key, metadata)
            track_event(
                "Updating repository metadata.",
                {
                    "RepositoryId": repository_id,
                    "RepositoryMetadata": metadata.model_dump_json(),
                    "Success": success,
                },
            )

        return metadata

    def add_worker_message(self, state: RepositoryState) -> ServiceNotificationMessage:
        """
        Dispatch a new session for the repository.

        The bookkeeping entry is written before the message is enqueued, so a
        worker that picks the message up right away always finds its session.
        """
        try:
            message = ServiceNotificationMessage(repository_state=state)
            job_key = constants.get_state_record_identifier(constants.REPOSITORY_JOB_PREFIX, state)

            self.queue_store.set_hash_value(
                job_key,
                message.session_key,
                SourceCodeJob(message=message, update_time=self.clock()),
            )
            self.queue_store.push_message(constants.WORKER_QUEUE, message)

            track_event(
                "Scheduling repository",
                {
                    "RepositoryId": state.repository_id,
                    "SessionId": message.session_key,
                    "RepositoryState": state.model_dump_json(),
                },
            )

            self.handle_repository_metadata(
                state.organization_name, state.repository_id, start_time=self.clock()
            )
            return message
        except Exception as e:
            track_exception(e, "Error in add_worker_message", {"RepositoryId": state.repository_id})
            raise

    def handle_successful_job(self, message: ServiceNotificationMessage) -> None:
        """Persist the outcome, reset the retry counter and keep the session's cache."""
        state = message.repository_state
        try:
            state_key = constants.get_state_record_identifier(constants.REPOSITORY_STATE_PREFIX, state)
            job_key = constants.get_state_record_identifier(constants.REPOSITORY_JOB_PREFIX, state)
            failed_job_key = constants.get_state_record_identifier(constants.FAILED_JOB_PREFIX, state)

            track_event(
                "Job succeeded, updating repository state.",
                {"RepositoryId": state.repository_id, "SessionId": message.session_key},
            )

            completed_state = state.model_copy(update={"id": state_key, "run_state": message.run_state})
            self.update_repository_state_in_store(state_key, completed_state)

            metadata = self.handle_repository_metadata(
                state.organization_name, state.repository_id, end_time=self.clock()
            )
            self.update_repository_metadata_in_store(metadata)

            if self.queue_store.key_exists(failed_job_key):
                self.queue_store.delete_value(failed_job_key)
            self.queue_store.delete_hash_value(job_key, message.session_key)

            session_cache = self.cache_factory.create_session_cache(message)
            global_cache = self.cache_factory.create_global_cache(message)
            session_cache.clear_and_merge_into_global_cache(global_cache)
        except Exception as e:
            track_exception(e, "Error in handle_successful_job", {"RepositoryId": state.repository_id})
            raise

    def handle_failed_job(
        self, message: ServiceNotificationMessage
    ) -> Optional[ServiceNotificationMessage]:
        """
        Discard the session's work and either retry or dead-letter the run.

        Returns the retry's message, or None when the retry budget is spent and
        the message went to the failure handler queue.
        """
        state = message.repository_state
        try:
            job_key = constants.get_state_record_identifier(constants.REPOSITORY_JOB_PREFIX, state)
            failed_job_key = constants.get_state_record_identifier(constants.FAILED_JOB_PREFIX, state)
            properties = {"RepositoryId": state.repository_id, "SessionId": message.session_key}

            track_event("Handling failed collection", properties)

            metadata = self.handle_repository_metadata(
                state.organization_name, state.repository_id, end_time=self.clock()
            )
            self.update_repository_metadata_in_store(metadata)

            self.cache_factory.create_session_cache(message).clear()

            attempt = self.queue_store.increment_below(failed_job_key, self.max_reruns)
            if attempt is not None:
                track_event("Re-running failed job.", {**properties, "Rerun": attempt})
                retry = self.add_worker_message(state)
                # The retry's entry supersedes the failed session's
                self.queue_store.delete_hash_value(job_key, message.session_key)
                return retry

            track_event("Reruns exceeded. Not rescheduling.", properties)
            failed = message
            if message.run_state != RunState.FAILURE:
                failed = message.model_copy(update={"run_state": RunState.FAILURE.value})
            self.queue_store.push_message(constants.FAILURE_HANDLER_QUEUE, failed)
            self.queue_store.delete_hash_value(job_key, message.session_key)
            return None
        except Exception as e:
            track_exception(e, "Error in handle_failed_job", {"RepositoryId": state.repository_id})
            raise

    def update_repository_state_in_store(self, key: str, state: RepositoryState) -> bool:
        success = self.state_repo.upsert(key, state)
        track_event(
            "RepositoryStateRecord",
            {
                "RepositoryId": state.repository_id,
                "RepositoryState": state.model_dump_json(),
                "UpsertItemSuccess": success,
            },
        )
        return success

    def update_repository_metadata_in_store(self, metadata: RepositoryMetadata) -> bool:
        success = self.metadata_repo.upsert(metadata.id, metadata)
        track_event(
            "RepositoryMetadataRecord",
            {
                "RepositoryId": metadata.repository_id,
                "RepositoryMetadata": metadata.model_dump_json(),
                "UpsertItemSuccess": success,
            },
        )
        return success
