"""
Maintenance Tasks - Scheduled reporting and housekeeping jobs.

These tasks are designed to run periodically via Celery Beat.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from collector_scheduler.celery_app import celery_app
from collector_scheduler.tasks.base import SchedulerTask

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=SchedulerTask,
    name="collector_scheduler.tasks.maintenance.report_dead_letters",
    queue="scheduler",
)
def report_dead_letters(self: SchedulerTask) -> Dict[str, Any]:
    """
    Report repositories whose runs exhausted their retries.

    The dead-letter queue is left untouched; draining it is an operator action.

    Returns:
        Dict with the failed repository ids and timestamp.
    """
    try:
        failed_repositories = self.components.dead_letters.list_failed_repositories()

        if failed_repositories:
            logger.warning(
                f"{len(failed_repositories)} repositories waiting on the dead-letter queue"
            )

        return {
            "status": "success",
            "failed_count": len(failed_repositories),
            "failed_repositories": failed_repositories,
            "executed_at": datetime.now(timezone.utc).isoformat(),
        }

    except Exception as e:
        logger.error(f"Dead-letter report failed: {e}", exc_info=True)
        return {
            "status": "failed",
            "error": str(e),
            "executed_at": datetime.now(timezone.utc).isoformat(),
        }
