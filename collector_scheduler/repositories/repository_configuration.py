"""Repository for RepositoryConfiguration entities"""

from typing import Any, Dict, List, Tuple

from pymongo.database import Database

from collector_scheduler.core.constants import REPOSITORY_CONFIGURATION_COLLECTION
from collector_scheduler.entities.repository_configuration import RepositoryConfiguration
from .base import BaseRepository


class RepositoryConfigurationRepository(BaseRepository[RepositoryConfiguration]):
    """Onboarded repositories and their schedules."""

    def __init__(self, db: Database):
        super().__init__(db, REPOSITORY_CONFIGURATION_COLLECTION, RepositoryConfiguration)

    def find_active(
        self, query: Dict[str, Any]
    ) -> Tuple[List[RepositoryConfiguration], Dict[str, str]]:
        """
        Configurations matching the scheduler's active-repository filter.

        Documents that do not validate are returned separately as
        `{_id: error}` so one bad record cannot stop the others from being
        scheduled.
        """
        return self.find_many_checked(query, sort=[("_id", 1)])
