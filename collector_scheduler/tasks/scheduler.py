"""
Scheduler Tasks - the two control loops of the scheduler.

These tasks are designed to run periodically via Celery Beat:
- run_scheduler_tick: decide which repositories are due and dispatch them
- consume_scheduler_queue: apply worker run-state notifications

Both only talk to MongoDB and Redis, so any number of Celery workers can run
them; a Redis lock keeps scheduler ticks from overlapping.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from collector_scheduler.celery_app import celery_app
from collector_scheduler.config import settings
from collector_scheduler.core import constants
from collector_scheduler.core.tracing import TracingContext
from collector_scheduler.tasks.base import SchedulerTask

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=SchedulerTask,
    name="collector_scheduler.tasks.scheduler.run_scheduler_tick",
    queue="scheduler",
    soft_time_limit=600,
    time_limit=660,
)
def run_scheduler_tick(self: SchedulerTask) -> Dict[str, Any]:
    """
    Run one scheduling pass over every active repository.

    Returns:
        Dict with per-outcome repository counts, or a skipped status when
        another tick still holds the tick lock.
    """
    TracingContext.set(task_name="run_scheduler_tick")
    correlation_id = TracingContext.get_or_create_correlation_id()
    components = self.components
    queue_store = components.queue_store

    try:
        tick_lock = queue_store.acquire_lock(
            constants.SCHEDULER_TICK_LOCK, components.scheduler_settings.tick_lock_ttl_seconds
        )
        if tick_lock is None:
            logger.info(f"{TracingContext.get_log_prefix()} Previous scheduler tick still running, skipping")
            return {"status": "skipped", "correlation_id": correlation_id}

        try:
            result = components.job.run_scheduler()
        finally:
            queue_store.release_lock(tick_lock)

        summary = result.summary()
        logger.info(f"{TracingContext.get_log_prefix()} Scheduler tick completed: {summary}")
        return {
            "status": "completed",
            "correlation_id": correlation_id,
            "summary": summary,
            "errors": result.errors,
            "executed_at": datetime.now(timezone.utc).isoformat(),
        }
    finally:
        TracingContext.clear()


@celery_app.task(
    bind=True,
    base=SchedulerTask,
    name="collector_scheduler.tasks.scheduler.consume_scheduler_queue",
    queue="scheduler",
    soft_time_limit=300,
    time_limit=360,
)
def consume_scheduler_queue(self: SchedulerTask, max_messages: Optional[int] = None) -> Dict[str, Any]:
    """
    Drain worker notifications from the scheduler queue.

    Args:
        max_messages: Upper bound of messages handled by this invocation.
            Defaults to SCHEDULER_CONSUMER_BATCH_SIZE.

    Returns:
        Dict with processed and failed message counts.
    """
    TracingContext.set(task_name="consume_scheduler_queue")
    try:
        result = self.components.service.drain(max_messages or settings.SCHEDULER_CONSUMER_BATCH_SIZE)
        if result["processed"] or result["failed"]:
            logger.info(f"Scheduler queue consumed: {result}")
        return result
    finally:
        TracingContext.clear()
