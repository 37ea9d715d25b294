"""
Service loops shared by the scheduler processes.

- ServiceBase: call `run()` repeatedly until a stop event is set.
- QueueServiceBase: `run()` pops one message from a queue, processes it and
  emits SessionStart/SessionEnd events around it.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict

from pydantic import ValidationError

from collector_scheduler.core import constants
from collector_scheduler.core.events import track_event, track_exception
from collector_scheduler.core.exceptions import MalformedMessageError
from collector_scheduler.core.tracing import TracingContext
from collector_scheduler.entities.notification import ServiceNotificationMessage
from collector_scheduler.services.queue_store import RedisQueueStore

logger = logging.getLogger(__name__)


class ServiceBase(ABC):
    """Base class for a long-running service with a single `run` step."""

    @abstractmethod
    def run(self) -> bool:
        """
        Execute one unit of work.

        Returns True when more work is immediately available, False when the
        loop should idle before the next call.
        """

    def run_until_stopped(self, stop_event: threading.Event, idle_seconds: float = 1.0) -> None:
        """
        Loop over `run()` until `stop_event` is set.

        Cancellation is cooperative: a `run()` in flight always finishes. A
        failing step is reported and the loop carries on with the next one.
        """
        properties = {"ServiceType": type(self).__name__}
        track_event("ServiceStart", properties)
        try:
            while not stop_event.is_set():
                try:
                    more_work = self.run()
                except Exception as e:
                    track_exception(e, f"{type(self).__name__} step failed", properties)
                    more_work = False
                if not more_work:
                    stop_event.wait(idle_seconds)
        finally:
            track_event("ServiceStop", properties)


class QueueServiceBase(ServiceBase):
    """Pop one notification message per `run()` and hand it to `run_queue_service`."""

    def __init__(self, queue_store: RedisQueueStore, queue_name: str):
        self.queue_store = queue_store
        self.queue_name = queue_name

    def run(self) -> bool:
        raw = self.queue_store.pop_raw(self.queue_name)
        if raw is None:
            return False

        message = self._parse(raw)
        outer_context = TracingContext.get()
        TracingContext.set(
            organization=message.repository_state.organization_name,
            repository_id=message.repository_state.repository_id,
            session_id=message.session_key,
        )

        success = True
        track_event("SessionStart", {"Message": raw, "QueueName": self.queue_name})
        try:
            self.run_queue_service(message)
        except Exception as e:
            track_exception(e, f"Error processing message from {self.queue_name}")
            success = False
            raise
        finally:
            track_event("SessionEnd", {"Message": raw, "Success": success})
            TracingContext.restore(outer_context)
        return True

    def drain(self, max_messages: int) -> Dict[str, Any]:
        """
        Process up to `max_messages` messages, isolating failures per message.

        Returns counts of processed and failed messages.
        """
        processed = 0
        failed = 0
        for _ in range(max_messages):
            try:
                if not self.run():
                    break
                processed += 1
            except Exception as e:
                failed += 1
                logger.warning(f"Message from {self.queue_name} failed: {e}")
        return {"queue": self.queue_name, "processed": processed, "failed": failed}

    def _parse(self, raw: str) -> ServiceNotificationMessage:
        try:
            return ServiceNotificationMessage.model_validate_json(raw)
        except ValidationError as e:
            # Keep the payload for inspection instead of dropping it
            self.queue_store.push_raw(constants.FAILURE_HANDLER_QUEUE, raw)
            track_exception(e, "Malformed notification message", {"QueueName": self.queue_name})
            raise MalformedMessageError(
                f"Invalid notification message on {self.queue_name}: {e}",
                queue_name=self.queue_name,
                payload=raw,
            ) from e

    @abstractmethod
    def run_queue_service(self, message: ServiceNotificationMessage) -> None:
        """Process a single message."""
