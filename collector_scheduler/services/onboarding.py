"""
Onboarding Service - writes repository configurations for the scheduler.

Active repositories are added with their onboarded time on first sight and
refreshed afterwards. Repositories reported inactive are offboarded in place
(state flipped, offboarded time stamped) so the scheduler's active filter
stops selecting them; they are never deleted.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional

from collector_scheduler.core.events import track_event
from collector_scheduler.entities.enums import RepositoryStatus
from collector_scheduler.entities.repository_configuration import RepositoryConfiguration
from collector_scheduler.repositories.repository_configuration import (
    RepositoryConfigurationRepository,
)
from collector_scheduler.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class OnboardingService:
    def __init__(
        self,
        config_repo: RepositoryConfigurationRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config_repo = config_repo
        self.clock = clock

    def register_repositories(self, configs: Iterable[RepositoryConfiguration]) -> Dict[str, Any]:
        added, updated, offboarded, failed = 0, 0, 0, 0
        for config in configs:
            result = self.register_repository(config)
            if result == "added":
                added += 1
            elif result == "updated":
                updated += 1
            elif result == "offboarded":
                offboarded += 1
            elif result == "failed":
                failed += 1

        summary = {"added": added, "updated": updated, "offboarded": offboarded, "failed": failed}
        logger.info(f"Onboarding completed: {summary}")
        return summary

    def register_repository(self, config: RepositoryConfiguration) -> Optional[str]:
        """Returns "added", "updated", "offboarded", "failed" or None when nothing changed."""
        key = config.record_id()
        existing = self.config_repo.find_by_id(key)
        properties = {"Id": key, "RepositoryId": config.repository_id}

        if config.state == RepositoryStatus.ACTIVE.value:
            if existing is None:
                new_config = config.model_copy(update={"id": key, "onboarded_time": self.clock()})
                if self.config_repo.add(key, new_config):
                    track_event("Created a new repository configuration item", properties)
                    return "added"
                track_event("Failed to create a new repository configuration item", properties)
                return "failed"

            refreshed = config.model_copy(
                update={
                    "id": key,
                    "onboarded_time": existing.onboarded_time or self.clock(),
                    "offboarded_time": None,
                }
            )
            self.config_repo.upsert(key, refreshed)
            return "updated"

        if existing is not None and existing.state == RepositoryStatus.ACTIVE.value:
            retired = existing.model_copy(
                update={"state": RepositoryStatus.INACTIVE.value, "offboarded_time": self.clock()}
            )
            self.config_repo.upsert(key, retired)
            track_event("Offboarded repository configuration", properties)
            return "offboarded"

        return None
