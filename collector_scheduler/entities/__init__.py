"""Database and wire entity models"""

from .base import BaseEntity
from .enums import (
    RepositoryStatus,
    RepositoryType,
    RunState,
    ScheduleType,
    StorageOption,
)
from .notification import ServiceNotificationMessage
from .repository_configuration import RepositoryConfiguration, Schedule
from .repository_metadata import RepositoryMetadata
from .repository_state import RepositoryState
from .source_code_job import SourceCodeJob

__all__ = [
    # Base
    "BaseEntity",
    # Enums
    "RepositoryStatus",
    "RepositoryType",
    "RunState",
    "ScheduleType",
    "StorageOption",
    # Durable records
    "RepositoryConfiguration",
    "Schedule",
    "RepositoryMetadata",
    "RepositoryState",
    # Queue records
    "ServiceNotificationMessage",
    "SourceCodeJob",
]
