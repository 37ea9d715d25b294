"""
Job caches keyed by commit/tree state.

A collection session writes what it computed into its session cache. On a
successful run the session cache is merged into the repository's global
cache (reusable by later runs); on failure it is discarded.

Redis Keys:
- GitCache:Session:{org}+{repo}:{session_id} - Hash of cache key -> value
- GitCache:Global:{org}+{repo} - Hash of cache key -> value
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import redis

from collector_scheduler.core import constants
from collector_scheduler.entities.notification import ServiceNotificationMessage

logger = logging.getLogger(__name__)


class RedisJobCache:
    """A Redis hash holding one cache's entries."""

    def __init__(self, client: redis.Redis, key: str):
        self._redis = client
        self.key = key

    def get(self, entry_key: str) -> Optional[str]:
        return self._redis.hget(self.key, entry_key)

    def put(self, entry_key: str, value: str) -> None:
        self._redis.hset(self.key, entry_key, value)

    def entries(self) -> Dict[str, str]:
        return self._redis.hgetall(self.key)

    def put_many(self, entries: Dict[str, str]) -> None:
        if entries:
            self._redis.hset(self.key, mapping=entries)

    def clear(self) -> None:
        self._redis.delete(self.key)

    def clear_and_merge_into_global_cache(self, global_cache: "RedisJobCache") -> int:
        """Copy every entry into `global_cache`, then clear this cache."""
        entries = self.entries()
        global_cache.put_many(entries)
        self.clear()
        logger.info(f"Merged {len(entries)} cache entries from {self.key} into {global_cache.key}")
        return len(entries)


class RedisJobCacheFactory:
    def __init__(self, client: redis.Redis):
        self._redis = client

    def create_session_cache(self, message: ServiceNotificationMessage) -> RedisJobCache:
        state = message.repository_state
        key = (
            f"{constants.SESSION_CACHE_PREFIX}:"
            f"{state.organization_name}+{state.repository_id}:{message.session_key}"
        )
        return RedisJobCache(self._redis, key)

    def create_global_cache(self, message: ServiceNotificationMessage) -> RedisJobCache:
        state = message.repository_state
        key = constants.get_record_identifier(
            constants.GLOBAL_CACHE_PREFIX, state.organization_name, state.repository_id
        )
        return RedisJobCache(self._redis, key)
