"""
SourceCodeJob - live bookkeeping entry for one in-flight session.

Stored in Redis as field `<session id>` of the hash `RepositoryJob:<org>+<repo>`.
It is the only record of "a job is currently running" and is trusted only
while `update_time` is within the scheduler's timeout window.
"""

from datetime import datetime, timedelta

from pydantic import BaseModel

from collector_scheduler.entities.enums import RunState
from collector_scheduler.entities.notification import ServiceNotificationMessage
from collector_scheduler.utils.datetime import ensure_utc


class SourceCodeJob(BaseModel):
    message: ServiceNotificationMessage
    update_time: datetime

    @property
    def is_running(self) -> bool:
        return self.message.run_state == RunState.RUNNING

    def is_stale(self, now: datetime, timeout: timedelta) -> bool:
        return now > ensure_utc(self.update_time) + timeout
