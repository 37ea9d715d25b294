"""Repository for RepositoryMetadata entities"""

from pymongo.database import Database

from collector_scheduler.core.constants import REPOSITORY_METADATA_COLLECTION
from collector_scheduler.entities.repository_metadata import RepositoryMetadata
from .base import BaseRepository


class RepositoryMetadataRepository(BaseRepository[RepositoryMetadata]):
    def __init__(self, db: Database):
        super().__init__(db, REPOSITORY_METADATA_COLLECTION, RepositoryMetadata)
