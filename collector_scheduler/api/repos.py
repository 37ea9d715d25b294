"""
Repository API - onboarding and live job inspection.

Endpoints:
- POST /repos - Onboard or offboard repository configurations
- GET /repos/{organization_name}/{repository_id}/jobs - Live bookkeeping entries
"""

from typing import List

from fastapi import APIRouter, Depends
from pymongo.database import Database

from collector_scheduler.api.deps import get_queue_store
from collector_scheduler.core import constants
from collector_scheduler.database.mongo import get_db
from collector_scheduler.entities.repository_configuration import RepositoryConfiguration
from collector_scheduler.entities.source_code_job import SourceCodeJob
from collector_scheduler.repositories.repository_configuration import (
    RepositoryConfigurationRepository,
)
from collector_scheduler.services.onboarding import OnboardingService
from collector_scheduler.services.queue_store import RedisQueueStore

router = APIRouter(prefix="/repos", tags=["Repositories"])


@router.post("")
def register_repositories(
    configs: List[RepositoryConfiguration],
    db: Database = Depends(get_db),
):
    service = OnboardingService(RepositoryConfigurationRepository(db))
    return service.register_repositories(configs)


@router.get("/{organization_name}/{repository_id}/jobs")
def get_repository_jobs(
    organization_name: str,
    repository_id: str,
    queue_store: RedisQueueStore = Depends(get_queue_store),
):
    job_key = constants.get_record_identifier(
        constants.REPOSITORY_JOB_PREFIX, organization_name, repository_id
    )
    jobs = queue_store.get_hash_values(job_key, SourceCodeJob)
    return {
        "repository_id": repository_id,
        "jobs": [job.model_dump(mode="json") for job in jobs],
    }
