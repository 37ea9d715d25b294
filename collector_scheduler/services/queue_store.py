"""
Redis-backed queue and key/value store shared by the scheduler and workers.

Queues are Redis lists (LPUSH to enqueue, RPOP to dequeue, so FIFO). Values,
hash fields and queue entries are JSON documents; pydantic models are written
with `model_dump_json` and read back with `model_validate_json`.

Redis Keys:
- RepositoryJob:{org}+{repo} - Hash of session id -> SourceCodeJob (live bookkeeping)
- FailedJob:{org}+{repo} - Retry counter for the repository
- RepositoryMetadata:{org}+{repo} - Cached RepositoryMetadata
- Lock:{org}+{repo} - Per-repository dispatch lock
- SchedulerQueue / WorkerQueue / FailureHandlerQueue - Message queues
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Type, TypeVar

import redis
from pydantic import BaseModel, ValidationError
from redis.lock import Lock

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _dumps(value: Any) -> str:
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    return json.dumps(value, default=str)


def _loads(raw: str, model: Optional[Type[M]] = None) -> Any:
    if model is not None:
        return model.model_validate_json(raw)
    return json.loads(raw)


class RedisQueueStore:
    """
    Queue, value and hash operations the scheduler needs from Redis.

    Every method is a single round-trip (or one transaction) and lets
    redis.RedisError propagate to the caller.
    """

    def __init__(self, client: redis.Redis):
        self._redis = client

    # ---------------- Queues ----------------
    def push_message(self, queue_name: str, message: Any) -> int:
        return self._redis.lpush(queue_name, _dumps(message))

    def push_raw(self, queue_name: str, payload: str) -> int:
        return self._redis.lpush(queue_name, payload)

    def pop_raw(self, queue_name: str) -> Optional[str]:
        """Non-blocking pop; None when the queue is empty."""
        return self._redis.rpop(queue_name)

    def pop_message(self, queue_name: str, model: Type[M]) -> Optional[M]:
        raw = self.pop_raw(queue_name)
        if raw is None:
            return None
        return _loads(raw, model)

    def list_raw(self, key: str, start: int, stop: int) -> List[str]:
        """Raw entries of a list, unparsed."""
        return self._redis.lrange(key, start, stop)

    def list_range(
        self, key: str, start: int, stop: int, model: Optional[Type[M]] = None
    ) -> List[Any]:
        """Entries of a list, skipping empty or unparsable ones."""
        items = []
        for raw in self._redis.lrange(key, start, stop):
            if not raw:
                continue
            try:
                items.append(_loads(raw, model))
            except (ValidationError, ValueError) as e:
                logger.warning(f"Skipping unreadable entry in {key}: {e}")
        return items

    def queue_length(self, queue_name: str) -> int:
        return self._redis.llen(queue_name)

    # ---------------- Values ----------------
    def get_value(self, key: str, model: Optional[Type[M]] = None) -> Any:
        raw = self._redis.get(key)
        if raw is None:
            return None
        return _loads(raw, model)

    def set_value(self, key: str, value: Any) -> bool:
        return bool(self._redis.set(key, _dumps(value)))

    def delete_value(self, key: str) -> bool:
        return self._redis.delete(key) > 0

    def key_exists(self, key: str) -> bool:
        return self._redis.exists(key) > 0

    def increment_below(self, key: str, ceiling: int) -> Optional[int]:
        """
        Atomically increment the integer counter at `key` if it is below `ceiling`.

        Returns the new value, or None when the counter already reached the
        ceiling (the counter is left untouched). A missing key counts as 0.
        """

        def _increment(pipe: redis.client.Pipeline) -> Optional[int]:
            raw = pipe.get(key)
            current = int(json.loads(raw)) if raw is not None else 0
            pipe.multi()
            if current >= ceiling:
                return None
            pipe.set(key, current + 1)
            return current + 1

        return self._redis.transaction(_increment, key, value_from_callable=True)

    # ---------------- Hashes ----------------
    def set_hash_value(self, hash_key: str, field: str, value: Any) -> None:
        self._redis.hset(hash_key, field, _dumps(value))

    def delete_hash_value(self, hash_key: str, field: str) -> bool:
        return self._redis.hdel(hash_key, field) > 0

    def get_hash_values(self, hash_key: str, model: Optional[Type[M]] = None) -> List[Any]:
        return [_loads(raw, model) for raw in self._redis.hvals(hash_key)]

    # ---------------- Locks ----------------
    def acquire_lock(self, key: str, ttl_seconds: int) -> Optional[Lock]:
        """Try once to take a TTL lock. Returns the held lock or None if it is taken."""
        lock = self._redis.lock(key, timeout=ttl_seconds, blocking=False)
        if lock.acquire(blocking=False):
            return lock
        return None

    def release_lock(self, lock: Lock) -> None:
        try:
            lock.release()
        except redis.exceptions.LockError as e:
            # Expired before release; another holder may own it now
            logger.warning(f"Lock {lock.name} was not held at release: {e}")
