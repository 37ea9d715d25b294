"""
Application configuration
"""
from datetime import timedelta
from typing import Any, Dict

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Source Code Collector Scheduler"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database (MongoDB)
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "sourcecode_collectors"

    # Redis (queues, job bookkeeping, caches, Celery broker)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Scheduler
    SCHEDULER_CONFIGURATION_QUERY: Dict[str, Any] = {"state": "Active"}
    SCHEDULER_MAX_TIMEOUT_MINUTES: int = 60
    SCHEDULER_MAX_RERUNS: int = 3
    SCHEDULER_TICK_SECONDS: float = 60.0
    SCHEDULER_MAX_CONCURRENCY: int = 1
    SCHEDULER_LOCK_TTL_SECONDS: int = 300
    # Must outlive the tick task time_limit
    SCHEDULER_TICK_LOCK_TTL_SECONDS: int = 720
    SCHEDULER_CONSUMER_INTERVAL_SECONDS: float = 5.0
    SCHEDULER_CONSUMER_BATCH_SIZE: int = 100
    DEAD_LETTER_REPORT_MINUTES: int = 15

    # Observability
    LOG_FORMAT: str = "text"
    PUBLISH_EVENTS: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True


class SchedulerSettings(BaseModel):
    """Knobs consumed by the scheduler helper, job and consumer."""

    configuration_query: Dict[str, Any] = Field(
        default_factory=lambda: {"state": "Active"},
        description="MongoDB filter selecting the active repository configurations",
    )
    max_timeout: timedelta = Field(
        default=timedelta(minutes=60),
        description="Staleness threshold for a RUNNING bookkeeping entry",
    )
    max_reruns: int = Field(default=3, ge=0, description="Upper bound of the retry counter")
    max_concurrency: int = Field(default=1, ge=1)
    lock_ttl_seconds: int = Field(default=300, ge=1)
    tick_lock_ttl_seconds: int = Field(default=720, ge=1)

    @classmethod
    def from_settings(cls, app_settings: "Settings") -> "SchedulerSettings":
        return cls(
            configuration_query=app_settings.SCHEDULER_CONFIGURATION_QUERY,
            max_timeout=timedelta(minutes=app_settings.SCHEDULER_MAX_TIMEOUT_MINUTES),
            max_reruns=app_settings.SCHEDULER_MAX_RERUNS,
            max_concurrency=app_settings.SCHEDULER_MAX_CONCURRENCY,
            lock_ttl_seconds=app_settings.SCHEDULER_LOCK_TTL_SECONDS,
            tick_lock_ttl_seconds=app_settings.SCHEDULER_TICK_LOCK_TTL_SECONDS,
        )


settings = Settings()
