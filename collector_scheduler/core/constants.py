"""
Record identifiers and queue names shared by the scheduler and the workers.

Every record kind is keyed as "<prefix>:<organization>+<repositoryId>", which
keeps keys unique per repository per record kind in both MongoDB and Redis.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collector_scheduler.entities.repository_state import RepositoryState

# Record prefixes
REPOSITORY_CONFIGURATION_PREFIX = "RepositoryConfiguration"
REPOSITORY_METADATA_PREFIX = "RepositoryMetadata"
REPOSITORY_STATE_PREFIX = "RepositoryState"
REPOSITORY_JOB_PREFIX = "RepositoryJob"
FAILED_JOB_PREFIX = "FailedJob"
LOCK_PREFIX = "Lock"

# Cache key prefixes
SESSION_CACHE_PREFIX = "GitCache:Session"
GLOBAL_CACHE_PREFIX = "GitCache:Global"

# Queues
SCHEDULER_QUEUE = "SchedulerQueue"  # workers -> scheduler run-state notifications
WORKER_QUEUE = "WorkerQueue"  # scheduler -> workers dispatch
FAILURE_HANDLER_QUEUE = "FailureHandlerQueue"  # exhausted retries (dead letter)

ALL_QUEUES = (SCHEDULER_QUEUE, WORKER_QUEUE, FAILURE_HANDLER_QUEUE)

SCHEDULER_TICK_LOCK = f"{LOCK_PREFIX}:SchedulerTick"

# MongoDB collections
REPOSITORY_CONFIGURATION_COLLECTION = "repository_configurations"
REPOSITORY_STATE_COLLECTION = "repository_states"
REPOSITORY_METADATA_COLLECTION = "repository_metadata"


def get_record_identifier(prefix: str, organization_name: str, repository_id: str) -> str:
    return f"{prefix}:{organization_name}+{repository_id}"


def get_state_record_identifier(prefix: str, state: "RepositoryState") -> str:
    """Same as get_record_identifier, reading the identity from a repository state."""
    return get_record_identifier(prefix, state.organization_name, state.repository_id)
