import unittest
from unittest.mock import MagicMock

from pymongo.errors import DuplicateKeyError

from collector_scheduler.entities import RepositoryMetadata, RepositoryState
from collector_scheduler.repositories import (
    RepositoryConfigurationRepository,
    RepositoryMetadataRepository,
    RepositoryStateRepository,
)
from tests.fakes import utc

STATE_KEY = "RepositoryState:contoso+R1"


class TestBaseRepository(unittest.TestCase):
    def setUp(self):
        self.db = MagicMock()
        self.collection = self.db.__getitem__.return_value
        self.repo = RepositoryStateRepository(self.db)

    def test_find_by_id_maps_document(self):
        self.collection.find_one.return_value = {
            "_id": STATE_KEY,
            "organization_name": "contoso",
            "repository_id": "R1",
            "run_state": "SUCCESS",
        }

        state = self.repo.find_by_id(STATE_KEY)

        self.collection.find_one.assert_called_once_with({"_id": STATE_KEY})
        self.assertEqual(state.id, STATE_KEY)
        self.assertEqual(state.run_state, "SUCCESS")

    def test_find_by_id_missing(self):
        self.collection.find_one.return_value = None

        self.assertIsNone(self.repo.find_by_id(STATE_KEY))

    def test_upsert_replaces_by_key(self):
        state = RepositoryState(organization_name="contoso", repository_id="R1")

        self.assertTrue(self.repo.upsert(STATE_KEY, state))

        filter_doc, doc = self.collection.replace_one.call_args.args
        self.assertEqual(filter_doc, {"_id": STATE_KEY})
        self.assertEqual(doc["_id"], STATE_KEY)
        self.assertEqual(self.collection.replace_one.call_args.kwargs, {"upsert": True})

    def test_add_reports_duplicate(self):
        self.collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

        added = self.repo.add(STATE_KEY, RepositoryState(organization_name="contoso", repository_id="R1"))

        self.assertFalse(added)

    def test_metadata_datetimes_stay_native(self):
        repo = RepositoryMetadataRepository(self.db)
        metadata = RepositoryMetadata(
            organization_name="contoso",
            repository_id="R1",
            last_collection_end_date_time=utc(2024, 1, 1, 0, 5),
        )

        repo.upsert("RepositoryMetadata:contoso+R1", metadata)

        _, doc = self.collection.replace_one.call_args.args
        self.assertEqual(doc["last_collection_end_date_time"], utc(2024, 1, 1, 0, 5))

    def test_find_active_sorts_by_key(self):
        repo = RepositoryConfigurationRepository(self.db)
        cursor = self.collection.find.return_value
        cursor.sort.return_value = []

        self.assertEqual(repo.find_active({"state": "Active"}), ([], {}))

        self.collection.find.assert_called_once_with({"state": "Active"})
        cursor.sort.assert_called_once_with([("_id", 1)])

    def test_find_active_skips_invalid_documents(self):
        repo = RepositoryConfigurationRepository(self.db)
        bad = {
            "_id": "RepositoryConfiguration:contoso+Broken",
            "organization_name": "contoso",
            "repository_id": "Broken",
            "repository_url": "https://example.com/contoso/Broken.git",
            "repository_schedule": {"type": "Cron", "value": None},
        }
        good = {
            "_id": "RepositoryConfiguration:contoso+R1",
            "organization_name": "contoso",
            "repository_id": "R1",
            "repository_url": "https://example.com/contoso/R1.git",
        }
        self.collection.find.return_value.sort.return_value = [bad, good]

        configs, invalid = repo.find_active({"state": "Active"})

        self.assertEqual([c.repository_id for c in configs], ["R1"])
        self.assertEqual(list(invalid), ["RepositoryConfiguration:contoso+Broken"])
        self.assertIn("repository_schedule.value", invalid["RepositoryConfiguration:contoso+Broken"])


if __name__ == "__main__":
    unittest.main()
