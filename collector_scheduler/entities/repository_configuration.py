"""
RepositoryConfiguration Entity - Onboarded repository and its collection schedule.

Written by the onboarding flow, read-only to the scheduler. Exactly one record
exists per (organization, repository id) because the record identifier is the
document key.

Collection: repository_configurations
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from collector_scheduler.core import constants
from collector_scheduler.entities.base import BaseEntity
from collector_scheduler.entities.enums import (
    RepositoryStatus,
    RepositoryType,
    ScheduleType,
    StorageOption,
)

DEFAULT_CRON = "0 * * * *"


class Schedule(BaseModel):
    """Collection schedule. `value` holds the cron expression for Cron schedules."""

    type: str = ScheduleType.CRON.value
    value: str = DEFAULT_CRON


class RepositoryConfiguration(BaseEntity):
    organization_name: str = Field(..., description="Organization owning the repository")
    repository_id: str = Field(..., description="Repository identifier within the organization")
    repository_url: str = Field(..., description="Remote URL used for git operations")
    region: Optional[str] = None
    state: RepositoryStatus = RepositoryStatus.ACTIVE
    type: RepositoryType = RepositoryType.GIT
    repository_schedule: Schedule = Field(default_factory=Schedule)
    storage_options: List[StorageOption] = Field(
        default_factory=lambda: [StorageOption.ADS_GEN_TWO]
    )
    onboarded_time: Optional[datetime] = None
    offboarded_time: Optional[datetime] = None

    def record_id(self) -> str:
        return self.id or constants.get_record_identifier(
            constants.REPOSITORY_CONFIGURATION_PREFIX,
            self.organization_name,
            self.repository_id,
        )
