"""
Telemetry event publishing.

Scheduler lifecycle events (SessionStart, SessionEnd, JobTimeout, ...) are
written to the log and published to the Redis "events" channel, where
dashboards and alerting subscribe to them. Publishing is best effort: a Redis
outage must never break scheduling.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from collector_scheduler.config import settings
from collector_scheduler.core.redis import get_redis
from collector_scheduler.core.tracing import TracingContext

logger = logging.getLogger(__name__)

# Redis channel for telemetry events
EVENTS_CHANNEL = "events"


def publish_event(event_type: str, payload: Dict[str, Any]) -> bool:
    """
    Publish an event to the Redis events channel.

    Args:
        event_type: Event type (e.g., "SessionStart", "JobTimeout")
        payload: Event payload data

    Returns:
        True if published successfully, False otherwise
    """
    if not settings.PUBLISH_EVENTS:
        return False

    try:
        message = json.dumps({"type": event_type, "payload": payload}, default=str)
        get_redis().publish(EVENTS_CHANNEL, message)
        return True
    except Exception as e:
        logger.error(f"Failed to publish event {event_type}: {e}")
        return False


def track_event(name: str, properties: Optional[Dict[str, Any]] = None) -> None:
    """Log a named event with its properties and publish it."""
    properties = dict(properties or {})
    logger.info(
        f"{TracingContext.get_log_prefix()}{name} {properties}",
        extra={"event": name, "properties": properties},
    )
    publish_event(
        name,
        {
            **properties,
            "context": TracingContext.get(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


def track_exception(
    exc: BaseException,
    message: str = "",
    properties: Optional[Dict[str, Any]] = None,
) -> None:
    """Log an exception with traceback and publish an Exception event."""
    properties = dict(properties or {})
    logger.error(
        f"{TracingContext.get_log_prefix()}{message or type(exc).__name__}: {exc}",
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={"event": "Exception", "properties": properties},
    )
    publish_event(
        "Exception",
        {
            **properties,
            "message": message,
            "exception_type": type(exc).__name__,
            "error": str(exc),
            "context": TracingContext.get(),
        },
    )
