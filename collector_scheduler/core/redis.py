"""
Redis connection helpers.
"""

from __future__ import annotations

import logging

import redis

logger = logging.getLogger(__name__)

_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    global _client
    if _client is None:
        # Import settings lazily to ensure env vars are loaded
        from collector_scheduler.config import settings

        logger.info("Initializing Redis client for %s", settings.REDIS_URL)
        _client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


def reset_redis() -> None:
    """Drop the cached client (used after fork and in tests)."""
    global _client
    _client = None
