"""Celery application configuration."""

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging
from celery.signals import worker_process_init

from collector_scheduler.config import settings

celery_app = Celery(
    "collector_scheduler",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "collector_scheduler.tasks.scheduler",
        "collector_scheduler.tasks.maintenance",
    ],
)

celery_app.conf.update(
    task_default_queue="scheduler",
    task_acks_late=False,
    worker_prefetch_multiplier=1,
    # Serialization
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Time settings
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,
    task_track_started=True,
)

# Beat schedule for the scheduler's control loops
celery_app.conf.beat_schedule = {
    "run-scheduler-tick": {
        "task": "collector_scheduler.tasks.scheduler.run_scheduler_tick",
        "schedule": settings.SCHEDULER_TICK_SECONDS,
    },
    "consume-scheduler-queue": {
        "task": "collector_scheduler.tasks.scheduler.consume_scheduler_queue",
        "schedule": settings.SCHEDULER_CONSUMER_INTERVAL_SECONDS,
    },
    "report-dead-letters": {
        "task": "collector_scheduler.tasks.maintenance.report_dead_letters",
        "schedule": crontab(minute=f"*/{settings.DEAD_LETTER_REPORT_MINUTES}"),
    },
}


@celery_setup_logging.connect
def _configure_logging(**kwargs):
    from collector_scheduler.core.logging import setup_logging

    setup_logging()


@worker_process_init.connect
def _reset_connections(**kwargs):
    # Clients created before fork must not be shared with the child
    from collector_scheduler.core.redis import reset_redis

    reset_redis()
