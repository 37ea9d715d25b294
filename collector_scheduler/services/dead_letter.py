"""
Dead-letter tooling for runs that exhausted their retry budget.

Messages land on the failure handler queue from SchedulerHelper, and payloads
that never parsed land there from the queue consumers. They wait there for an
operator. This service reports on them and drains them; unparsable payloads
are returned raw instead of being dropped.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from pydantic import ValidationError

from collector_scheduler.core import constants
from collector_scheduler.core.events import track_event
from collector_scheduler.entities.notification import ServiceNotificationMessage
from collector_scheduler.services.queue_store import RedisQueueStore

logger = logging.getLogger(__name__)


@dataclass
class DeadLetters:
    """Dead-letter queue content, oldest first."""

    messages: List[ServiceNotificationMessage] = field(default_factory=list)
    unreadable: List[str] = field(default_factory=list)


def _split(raw_entries: Iterable[str]) -> DeadLetters:
    letters = DeadLetters()
    for raw in raw_entries:
        try:
            letters.messages.append(ServiceNotificationMessage.model_validate_json(raw))
        except ValidationError:
            letters.unreadable.append(raw)
    return letters


class DeadLetterService:
    def __init__(self, queue_store: RedisQueueStore, queue_name: str = constants.FAILURE_HANDLER_QUEUE):
        self.queue_store = queue_store
        self.queue_name = queue_name

    def peek(self) -> DeadLetters:
        """Everything on the queue, oldest first, without removing it."""
        # LPUSH puts the newest entry at index 0
        return _split(reversed(self.queue_store.list_raw(self.queue_name, 0, -1)))

    def list_failed_repositories(self) -> List[str]:
        """Repository ids on the queue, reported as a RepositoryFailures event."""
        letters = self.peek()
        failed_repositories = [
            message.repository_state.repository_id
            for message in letters.messages
            if message.repository_state.repository_id
        ]
        track_event(
            "RepositoryFailures",
            {
                "Number of Failures": len(failed_repositories),
                "Failed Repositories": failed_repositories,
                "Unreadable Messages": len(letters.unreadable),
            },
        )
        return failed_repositories

    def drain(self) -> DeadLetters:
        """Pop every entry off the queue and return it, readable or not."""
        raw_entries = []
        while True:
            raw = self.queue_store.pop_raw(self.queue_name)
            if raw is None:
                break
            raw_entries.append(raw)

        letters = _split(raw_entries)
        logger.info(
            f"Drained {len(letters.messages)} messages and {len(letters.unreadable)} "
            f"unreadable payloads from {self.queue_name}"
        )
        return letters
