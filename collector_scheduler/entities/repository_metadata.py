"""
RepositoryMetadata Entity - Collection timestamps of a repository.

Created on the first scheduling decision for a repository and stamped every
time a run starts or ends.

Collection: repository_metadata
"""

from datetime import datetime
from typing import Optional

from collector_scheduler.entities.base import BaseEntity


class RepositoryMetadata(BaseEntity):
    organization_name: str
    repository_id: str
    last_collection_begin_date_time: Optional[datetime] = None
    last_collection_end_date_time: Optional[datetime] = None
