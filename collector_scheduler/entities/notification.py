"""
ServiceNotificationMessage - the wire message exchanged over the shared queues.

The scheduler sends it to workers (WorkerQueue) to start a session, and the
workers send it back (SchedulerQueue) to report RUNNING, SUCCESS or FAILURE.
A message is immutable once built; a retry is a new message with a new
session id.
"""

import uuid

from pydantic import BaseModel, Field

from collector_scheduler.entities.enums import RunState
from collector_scheduler.entities.repository_state import RepositoryState


class ServiceNotificationMessage(BaseModel):
    session_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    repository_state: RepositoryState
    run_state: RunState = RunState.RUNNING

    class Config:
        frozen = True
        use_enum_values = True
        validate_default = True

    @property
    def session_key(self) -> str:
        """Hash field used for this session's bookkeeping entry."""
        return str(self.session_id)
