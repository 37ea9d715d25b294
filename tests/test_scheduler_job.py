import unittest
from datetime import timedelta
from unittest.mock import patch

from collector_scheduler.config import SchedulerSettings
from collector_scheduler.core import constants
from collector_scheduler.core.exceptions import ScheduleConfigurationError
from collector_scheduler.core.tracing import TracingContext
from collector_scheduler.entities import (
    RepositoryConfiguration,
    RepositoryMetadata,
    RepositoryState,
    RunState,
    ServiceNotificationMessage,
    SourceCodeJob,
)
from collector_scheduler.entities.repository_configuration import Schedule
from collector_scheduler.services.scheduler_helper import SchedulerHelper
from collector_scheduler.services.scheduler_job import (
    RepositoryOutcome,
    SchedulerJob,
    next_occurrence,
)
from tests.fakes import (
    FakeClock,
    FakeJobCacheFactory,
    FakeQueueStore,
    config_repository,
    metadata_repository,
    state_repository,
    utc,
)

ORG = "contoso"


def key(prefix, repo):
    return constants.get_record_identifier(prefix, ORG, repo)


class TestNextOccurrence(unittest.TestCase):
    def test_strictly_after_last_end(self):
        self.assertEqual(next_occurrence("0 * * * *", utc(2024, 1, 1, 0, 5)), utc(2024, 1, 1, 1, 0))
        self.assertEqual(next_occurrence("0 * * * *", utc(2024, 1, 1, 1, 0)), utc(2024, 1, 1, 2, 0))

    def test_unparsable_expression(self):
        with self.assertRaises(ScheduleConfigurationError) as ctx:
            next_occurrence("every hour please", utc(2024, 1, 1))

        self.assertEqual(ctx.exception.value, "every hour please")
        self.assertEqual(ctx.exception.schedule_type, "Cron")


class SchedulerJobTestCase(unittest.TestCase):
    max_concurrency = 1

    def setUp(self):
        self.clock = FakeClock(utc(2024, 1, 1, 0, 59))
        self.queue_store = FakeQueueStore()
        self.config_repo = config_repository()
        self.state_repo = state_repository()
        self.metadata_repo = metadata_repository()
        self.scheduler_settings = SchedulerSettings(
            max_reruns=2,
            max_timeout=timedelta(minutes=10),
            max_concurrency=self.max_concurrency,
        )
        self.helper = SchedulerHelper(
            queue_store=self.queue_store,
            state_repo=self.state_repo,
            metadata_repo=self.metadata_repo,
            cache_factory=FakeJobCacheFactory(),
            scheduler_settings=self.scheduler_settings,
            clock=self.clock,
        )
        self.job = SchedulerJob(
            queue_store=self.queue_store,
            config_repo=self.config_repo,
            state_repo=self.state_repo,
            scheduler_helper=self.helper,
            scheduler_settings=self.scheduler_settings,
            clock=self.clock,
        )

    def add_config(self, repo, schedule=None, state="Active"):
        config = RepositoryConfiguration(
            organization_name=ORG,
            repository_id=repo,
            repository_url=f"https://example.com/{ORG}/{repo}.git",
            state=state,
            repository_schedule=schedule or Schedule(),
        )
        self.config_repo.upsert(config.record_id(), config)
        return config

    def set_last_end(self, repo, end):
        metadata = RepositoryMetadata(
            id=key(constants.REPOSITORY_METADATA_PREFIX, repo),
            organization_name=ORG,
            repository_id=repo,
            last_collection_end_date_time=end,
        )
        self.metadata_repo.upsert(metadata.id, metadata)

    def add_running_job(self, repo, update_time):
        message = ServiceNotificationMessage(
            repository_state=RepositoryState(organization_name=ORG, repository_id=repo)
        )
        self.queue_store.set_hash_value(
            key(constants.REPOSITORY_JOB_PREFIX, repo),
            message.session_key,
            SourceCodeJob(message=message, update_time=update_time),
        )
        return message

    def jobs(self, repo):
        return self.queue_store.get_hash_values(key(constants.REPOSITORY_JOB_PREFIX, repo), SourceCodeJob)

    def dispatched(self):
        return self.queue_store.messages(constants.WORKER_QUEUE, ServiceNotificationMessage)


class TestShouldSchedule(SchedulerJobTestCase):
    def test_never_completed_repository_is_due(self):
        config = self.add_config("R1", Schedule(value="0 0 1 1 *"))

        self.assertTrue(self.job.should_schedule(config))

    def test_hourly_cron_due_at_next_hour(self):
        config = self.add_config("R1", Schedule(type="Cron", value="0 * * * *"))
        self.set_last_end("R1", utc(2024, 1, 1, 0, 5))

        self.assertFalse(self.job.should_schedule(config))

        self.clock.advance(minutes=1)
        self.assertTrue(self.job.should_schedule(config))

    def test_unsupported_schedule_type_is_never_due(self):
        config = self.add_config("R1", Schedule(type="Interval", value="PT1H"))
        self.set_last_end("R1", utc(2023, 1, 1))

        self.assertFalse(self.job.should_schedule(config))

    def test_unparsable_cron_is_never_due(self):
        config = self.add_config("R1", Schedule(value="61 * * * *"))
        self.set_last_end("R1", utc(2023, 1, 1))

        self.assertFalse(self.job.should_schedule(config))

    def test_cached_end_time_wins_over_mongo(self):
        config = self.add_config("R1")
        self.set_last_end("R1", utc(2023, 1, 1))
        self.queue_store.set_value(
            key(constants.REPOSITORY_METADATA_PREFIX, "R1"),
            RepositoryMetadata(
                organization_name=ORG,
                repository_id="R1",
                last_collection_end_date_time=utc(2024, 1, 1, 0, 30),
            ),
        )

        self.assertFalse(self.job.should_schedule(config))


class TestScheduleRepository(SchedulerJobTestCase):
    def test_due_repository_is_dispatched(self):
        config = self.add_config("R1")

        outcome = self.job.schedule_repository(config)

        self.assertEqual(outcome, RepositoryOutcome.SCHEDULED)
        dispatched = self.dispatched()
        self.assertEqual(len(dispatched), 1)
        self.assertEqual(dispatched[0].repository_state.repository_id, "R1")
        self.assertEqual(dispatched[0].run_state, RunState.RUNNING)
        self.assertEqual([j.message.session_id for j in self.jobs("R1")], [dispatched[0].session_id])

    def test_missing_state_is_synthesized_from_configuration(self):
        config = self.add_config("R1")

        self.job.schedule_repository(config)

        state = self.dispatched()[0].repository_state
        self.assertEqual(state.id, key(constants.REPOSITORY_STATE_PREFIX, "R1"))
        self.assertEqual(state.repository_url, config.repository_url)

    def test_stored_state_is_dispatched(self):
        config = self.add_config("R1")
        stored = RepositoryState(
            id=key(constants.REPOSITORY_STATE_PREFIX, "R1"),
            organization_name=ORG,
            repository_id="R1",
            repository_url="https://mirror.example.com/R1.git",
            run_state=RunState.SUCCESS,
        )
        self.state_repo.upsert(stored.id, stored)

        self.job.schedule_repository(config)

        self.assertEqual(
            self.dispatched()[0].repository_state.repository_url, "https://mirror.example.com/R1.git"
        )

    def test_healthy_running_job_blocks_dispatch(self):
        config = self.add_config("R1")
        self.add_running_job("R1", update_time=self.clock.now - timedelta(minutes=9))

        outcome = self.job.schedule_repository(config)

        self.assertEqual(outcome, RepositoryOutcome.RUNNING)
        self.assertEqual(self.dispatched(), [])
        self.assertEqual(len(self.jobs("R1")), 1)

    def test_stale_job_times_out_and_retries(self):
        config = self.add_config("R1")
        stale = self.add_running_job("R1", update_time=self.clock.now - timedelta(minutes=11))

        outcome = self.job.schedule_repository(config)

        self.assertEqual(outcome, RepositoryOutcome.TIMED_OUT)
        retry = self.dispatched()
        self.assertEqual(len(retry), 1)
        self.assertNotEqual(retry[0].session_id, stale.session_id)
        self.assertEqual([j.message.session_id for j in self.jobs("R1")], [retry[0].session_id])
        self.assertEqual(self.queue_store.get_value(key(constants.FAILED_JOB_PREFIX, "R1")), 1)

    def test_stale_job_with_spent_budget_is_dead_lettered(self):
        config = self.add_config("R1")
        self.queue_store.set_value(key(constants.FAILED_JOB_PREFIX, "R1"), 2)
        stale = self.add_running_job("R1", update_time=self.clock.now - timedelta(hours=2))

        outcome = self.job.schedule_repository(config)

        self.assertEqual(outcome, RepositoryOutcome.TIMED_OUT)
        self.assertEqual(self.dispatched(), [])
        dead = self.queue_store.messages(constants.FAILURE_HANDLER_QUEUE, ServiceNotificationMessage)
        self.assertEqual([m.session_id for m in dead], [stale.session_id])
        self.assertEqual(dead[0].run_state, RunState.FAILURE)
        self.assertEqual(self.jobs("R1"), [])

    def test_not_due_repository_is_left_alone(self):
        config = self.add_config("R1")
        self.set_last_end("R1", utc(2024, 1, 1, 0, 5))

        self.assertEqual(self.job.schedule_repository(config), RepositoryOutcome.NOT_DUE)
        self.assertEqual(self.dispatched(), [])

    def test_second_tick_does_not_double_dispatch(self):
        config = self.add_config("R1")

        self.job.schedule_repository(config)
        self.clock.advance(minutes=1)

        self.assertEqual(self.job.schedule_repository(config), RepositoryOutcome.RUNNING)
        self.assertEqual(len(self.dispatched()), 1)


class TestRunScheduler(SchedulerJobTestCase):
    def test_only_active_configurations_are_scheduled(self):
        self.add_config("R1")
        self.add_config("R2", state="Inactive")

        result = self.job.run_scheduler()

        self.assertEqual(list(result.outcomes), [key(constants.REPOSITORY_CONFIGURATION_PREFIX, "R1")])
        self.assertEqual(result.summary()["scheduled"], 1)
        self.assertEqual(result.summary()["total"], 1)

    def test_locked_repository_is_skipped(self):
        self.add_config("R1")
        self.queue_store.locks.add(key(constants.LOCK_PREFIX, "R1"))

        result = self.job.run_scheduler()

        self.assertEqual(
            result.outcomes[key(constants.REPOSITORY_CONFIGURATION_PREFIX, "R1")],
            RepositoryOutcome.LOCKED,
        )
        self.assertEqual(self.dispatched(), [])

    def test_lock_is_released_after_scheduling(self):
        self.add_config("R1")

        self.job.run_scheduler()

        self.assertEqual(self.queue_store.locks, set())

    def test_error_is_isolated_to_its_repository(self):
        self.add_config("R1")
        self.add_config("R2")
        broken_key = key(constants.REPOSITORY_STATE_PREFIX, "R1")
        find_by_id = self.state_repo.find_by_id

        def fail_for_r1(record_key):
            if record_key == broken_key:
                raise RuntimeError("mongo unavailable")
            return find_by_id(record_key)

        with patch.object(self.state_repo, "find_by_id", side_effect=fail_for_r1):
            result = self.job.run_scheduler()

        r1 = key(constants.REPOSITORY_CONFIGURATION_PREFIX, "R1")
        r2 = key(constants.REPOSITORY_CONFIGURATION_PREFIX, "R2")
        self.assertEqual(result.outcomes[r1], RepositoryOutcome.ERROR)
        self.assertIn("mongo unavailable", result.errors[r1])
        self.assertEqual(result.outcomes[r2], RepositoryOutcome.SCHEDULED)
        self.assertEqual(self.queue_store.locks, set())

    def test_invalid_configuration_does_not_block_the_tick(self):
        self.add_config("R2")
        broken_key = key(constants.REPOSITORY_CONFIGURATION_PREFIX, "R1")
        self.config_repo.docs[broken_key] = {
            "_id": broken_key,
            "organization_name": ORG,
            "repository_id": "R1",
            "state": "Active",
            "repository_url": "https://example.com/contoso/R1.git",
            "repository_schedule": {"type": "Cron", "value": None},
        }

        result = self.job.run_scheduler()

        self.assertEqual(result.outcomes[broken_key], RepositoryOutcome.ERROR)
        self.assertIn("repository_schedule.value", result.errors[broken_key])
        self.assertEqual(
            result.outcomes[key(constants.REPOSITORY_CONFIGURATION_PREFIX, "R2")],
            RepositoryOutcome.SCHEDULED,
        )
        self.assertEqual([m.repository_state.repository_id for m in self.dispatched()], ["R2"])

    def test_tick_tracing_context_survives_each_repository(self):
        self.add_config("R1")
        self.add_config("R2")
        TracingContext.set(correlation_id="tick-1234", task_name="run_scheduler_tick")
        self.addCleanup(TracingContext.clear)
        seen = []
        schedule_repository = self.job.schedule_repository

        def record_context(repo_config):
            seen.append(TracingContext.get())
            return schedule_repository(repo_config)

        with patch.object(self.job, "schedule_repository", side_effect=record_context):
            self.job.run_scheduler()

        self.assertEqual([ctx["correlation_id"] for ctx in seen], ["tick-1234", "tick-1234"])
        self.assertEqual([ctx["repository_id"] for ctx in seen], ["R1", "R2"])
        after = TracingContext.get()
        self.assertEqual(after["correlation_id"], "tick-1234")
        self.assertEqual(after["task_name"], "run_scheduler_tick")
        self.assertEqual(after["repository_id"], "")

    def test_configuration_read_failure_propagates(self):
        with patch.object(self.config_repo, "find_active", side_effect=RuntimeError("down")):
            with self.assertRaises(RuntimeError):
                self.job.run_scheduler()

    def test_run_step_reports_no_immediate_work(self):
        self.add_config("R1")

        self.assertFalse(self.job.run())
        self.assertEqual(len(self.dispatched()), 1)


class TestRunSchedulerFanOut(SchedulerJobTestCase):
    max_concurrency = 4

    def test_every_repository_is_scheduled_once(self):
        repos = [f"R{i}" for i in range(6)]
        for repo in repos:
            self.add_config(repo)

        result = self.job.run_scheduler()

        self.assertEqual(result.summary()["scheduled"], len(repos))
        dispatched = sorted(m.repository_state.repository_id for m in self.dispatched())
        self.assertEqual(dispatched, sorted(repos))

    def test_worker_threads_inherit_tick_context(self):
        for repo in ("R1", "R2", "R3"):
            self.add_config(repo)
        TracingContext.set(correlation_id="tick-5678")
        self.addCleanup(TracingContext.clear)
        seen = []
        schedule_repository = self.job.schedule_repository

        def record_context(repo_config):
            seen.append(TracingContext.get()["correlation_id"])
            return schedule_repository(repo_config)

        with patch.object(self.job, "schedule_repository", side_effect=record_context):
            self.job.run_scheduler()

        self.assertEqual(seen, ["tick-5678"] * 3)


if __name__ == "__main__":
    unittest.main()
