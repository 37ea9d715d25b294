"""
Monitoring API - Endpoints for scheduler observability.

Endpoints:
- GET /monitoring/system - Queue depths, Redis and MongoDB stats
- GET /monitoring/dead-letters - Runs that exhausted their retries
- POST /monitoring/dead-letters/drain - Remove and return every dead letter
"""

import logging

import redis
from fastapi import APIRouter, Depends
from pymongo.database import Database

from collector_scheduler.api.deps import get_queue_store, get_redis_client
from collector_scheduler.database.mongo import get_db
from collector_scheduler.services.dead_letter import DeadLetterService
from collector_scheduler.services.monitoring_service import MonitoringService
from collector_scheduler.services.queue_store import RedisQueueStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/monitoring", tags=["Monitoring"])


@router.get("/system")
def get_system_stats(
    db: Database = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis_client),
):
    """
    Get scheduler system statistics.

    Returns stats for:
    - Scheduler, worker and dead-letter queues
    - Redis server
    - MongoDB collections
    """
    service = MonitoringService(db, redis_client)
    return service.get_system_stats()


@router.get("/dead-letters")
def get_dead_letters(queue_store: RedisQueueStore = Depends(get_queue_store)):
    """List dead-lettered messages and unreadable payloads, oldest first, without removing them."""
    service = DeadLetterService(queue_store)
    letters = service.peek()
    return {
        "count": len(letters.messages),
        "items": [message.model_dump(mode="json") for message in letters.messages],
        "unreadable": letters.unreadable,
    }


@router.post("/dead-letters/drain")
def drain_dead_letters(queue_store: RedisQueueStore = Depends(get_queue_store)):
    """Remove every dead-lettered entry and return it."""
    service = DeadLetterService(queue_store)
    letters = service.drain()
    logger.info(f"Drained {len(letters.messages) + len(letters.unreadable)} dead letters via API")
    return {
        "drained": len(letters.messages),
        "items": [message.model_dump(mode="json") for message in letters.messages],
        "unreadable": letters.unreadable,
    }
