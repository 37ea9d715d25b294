"""
RepositoryState Entity - Durable snapshot of a repository's collection status.

Upserted every time a run completes successfully.

Collection: repository_states
"""

from typing import Optional

from collector_scheduler.entities.base import BaseEntity
from collector_scheduler.entities.enums import RunState


class RepositoryState(BaseEntity):
    organization_name: str
    repository_id: str
    repository_url: str = ""
    run_state: Optional[RunState] = None
