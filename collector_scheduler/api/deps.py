"""FastAPI dependencies."""

import redis

from collector_scheduler.core.redis import get_redis
from collector_scheduler.services.queue_store import RedisQueueStore


def get_redis_client() -> redis.Redis:
    return get_redis()


def get_queue_store() -> RedisQueueStore:
    return RedisQueueStore(get_redis())
