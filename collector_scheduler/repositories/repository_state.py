"""Repository for RepositoryState entities"""

from pymongo.database import Database

from collector_scheduler.core.constants import REPOSITORY_STATE_COLLECTION
from collector_scheduler.entities.repository_state import RepositoryState
from .base import BaseRepository


class RepositoryStateRepository(BaseRepository[RepositoryState]):
    def __init__(self, db: Database):
        super().__init__(db, REPOSITORY_STATE_COLLECTION, RepositoryState)
