"""Shared enums for scheduler entities."""

from enum import Enum


class RepositoryStatus(str, Enum):
    """Onboarding state of a repository configuration."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"


class RepositoryType(str, Enum):
    GIT = "Git"


class StorageOption(str, Enum):
    ADS_GEN_TWO = "AdsGenTwo"


class ScheduleType(str, Enum):
    """Schedule kinds. Only CRON is evaluated by the scheduler."""

    CRON = "Cron"


class RunState(str, Enum):
    """Status of a single collection attempt (session)."""

    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
