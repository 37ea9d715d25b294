"""Base Celery task giving scheduler tasks lazy access to MongoDB, Redis and components."""

from typing import Optional

from celery import Task
from pymongo.database import Database

from collector_scheduler.core.redis import get_redis
from collector_scheduler.database.mongo import get_database
from collector_scheduler.services.factory import SchedulerComponents


class SchedulerTask(Task):
    abstract = True

    _db: Optional[Database] = None
    _components: Optional[SchedulerComponents] = None

    @property
    def db(self) -> Database:
        if self._db is None:
            self._db = get_database()
        return self._db

    @property
    def components(self) -> SchedulerComponents:
        if self._components is None:
            self._components = SchedulerComponents(self.db, get_redis())
        return self._components
