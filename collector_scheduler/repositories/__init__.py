"""Repository layer for database operations"""

from .base import BaseRepository
from .repository_configuration import RepositoryConfigurationRepository
from .repository_metadata import RepositoryMetadataRepository
from .repository_state import RepositoryStateRepository

__all__ = [
    "BaseRepository",
    "RepositoryConfigurationRepository",
    "RepositoryMetadataRepository",
    "RepositoryStateRepository",
]
