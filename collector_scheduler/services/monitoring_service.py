"""
Monitoring Service - Gathers scheduler stats from Redis and MongoDB.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

import redis
from pymongo.database import Database

from collector_scheduler.core import constants

logger = logging.getLogger(__name__)


class MonitoringService:
    """Service to gather queue depths and store health."""

    def __init__(self, db: Database, redis_client: redis.Redis):
        self.db = db
        self.redis_client = redis_client

    def get_system_stats(self) -> Dict[str, Any]:
        """Get comprehensive system stats."""
        return {
            "queues": self.get_queue_lengths(),
            "redis": self._get_redis_stats(),
            "mongodb": self._get_mongodb_stats(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def get_queue_lengths(self) -> Dict[str, int]:
        """Get message count for each scheduler queue."""
        queues = {}

        try:
            for queue_name in constants.ALL_QUEUES:
                queues[queue_name] = self.redis_client.llen(queue_name)
        except Exception as e:
            logger.error(f"Failed to get queue lengths: {e}")

        return queues

    def _get_redis_stats(self) -> Dict[str, Any]:
        """Get Redis server stats."""
        try:
            info = self.redis_client.info()
            return {
                "connected": True,
                "version": info.get("redis_version", "unknown"),
                "memory_used": info.get("used_memory_human", "0B"),
                "connected_clients": info.get("connected_clients", 0),
                "uptime_days": info.get("uptime_in_days", 0),
            }
        except Exception as e:
            logger.error(f"Failed to get Redis stats: {e}")
            return {
                "connected": False,
                "error": str(e),
            }

    def _get_mongodb_stats(self) -> Dict[str, Any]:
        """Get MongoDB collection counts."""
        try:
            self.db.command("ping")
            return {
                "connected": True,
                "collections": {
                    name: self.db[name].estimated_document_count()
                    for name in (
                        constants.REPOSITORY_CONFIGURATION_COLLECTION,
                        constants.REPOSITORY_STATE_COLLECTION,
                        constants.REPOSITORY_METADATA_COLLECTION,
                    )
                },
            }
        except Exception as e:
            logger.error(f"Failed to get MongoDB stats: {e}")
            return {
                "connected": False,
                "error": str(e),
            }
