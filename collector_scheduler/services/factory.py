"""Wiring of the scheduler components over a MongoDB database and a Redis client."""

from typing import Optional

import redis
from pymongo.database import Database

from collector_scheduler.config import SchedulerSettings, settings
from collector_scheduler.repositories.repository_configuration import (
    RepositoryConfigurationRepository,
)
from collector_scheduler.repositories.repository_metadata import RepositoryMetadataRepository
from collector_scheduler.repositories.repository_state import RepositoryStateRepository
from collector_scheduler.services.dead_letter import DeadLetterService
from collector_scheduler.services.job_cache import RedisJobCacheFactory
from collector_scheduler.services.queue_store import RedisQueueStore
from collector_scheduler.services.scheduler_helper import SchedulerHelper
from collector_scheduler.services.scheduler_job import SchedulerJob
from collector_scheduler.services.scheduler_service import SchedulerService


class SchedulerComponents:
    """One helper shared by the tick loop and the queue consumer."""

    def __init__(
        self,
        db: Database,
        redis_client: redis.Redis,
        scheduler_settings: Optional[SchedulerSettings] = None,
    ):
        self.scheduler_settings = scheduler_settings or SchedulerSettings.from_settings(settings)
        self.queue_store = RedisQueueStore(redis_client)
        self.config_repo = RepositoryConfigurationRepository(db)
        self.state_repo = RepositoryStateRepository(db)
        self.metadata_repo = RepositoryMetadataRepository(db)

        self.helper = SchedulerHelper(
            queue_store=self.queue_store,
            state_repo=self.state_repo,
            metadata_repo=self.metadata_repo,
            cache_factory=RedisJobCacheFactory(redis_client),
            scheduler_settings=self.scheduler_settings,
        )
        self.job = SchedulerJob(
            queue_store=self.queue_store,
            config_repo=self.config_repo,
            state_repo=self.state_repo,
            scheduler_helper=self.helper,
            scheduler_settings=self.scheduler_settings,
        )
        self.service = SchedulerService(queue_store=self.queue_store, scheduler_helper=self.helper)
        self.dead_letters = DeadLetterService(self.queue_store)
