"""
Health check endpoints
"""

import redis
from fastapi import APIRouter, Depends
from pymongo.database import Database

from collector_scheduler.api.deps import get_redis_client
from collector_scheduler.database.mongo import get_db
from collector_scheduler.utils.datetime import utc_now

router = APIRouter()


@router.get("/health")
async def health_check():
    """Simple API health check."""
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": "Source Code Collector Scheduler",
    }


@router.get("/health/db")
def database_health(db: Database = Depends(get_db)):
    """MongoDB health check."""
    try:
        db.command("ping")
    except Exception as exc:  # pragma: no cover - best effort check
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "error": str(exc),
            "timestamp": utc_now().isoformat(),
        }

    return {
        "status": "healthy",
        "database": "connected",
        "timestamp": utc_now().isoformat(),
    }


@router.get("/health/redis")
def redis_health(redis_client: redis.Redis = Depends(get_redis_client)):
    """Redis health check."""
    try:
        redis_client.ping()
    except Exception as exc:  # pragma: no cover - best effort check
        return {
            "status": "unhealthy",
            "redis": "disconnected",
            "error": str(exc),
            "timestamp": utc_now().isoformat(),
        }

    return {
        "status": "healthy",
        "redis": "connected",
        "timestamp": utc_now().isoformat(),
    }
