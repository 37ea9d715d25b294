"""Generic MongoDB repository keyed by record identifier."""

from __future__ import annotations

import logging
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import ValidationError
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from collector_scheduler.entities.base import BaseEntity

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseEntity)


class BaseRepository(Generic[T]):
    """
    Document store operations used by the scheduler.

    Each record kind lives in its own collection with the composite record
    identifier as `_id`. Errors from pymongo propagate to the caller.
    """

    def __init__(self, db: Database, collection_name: str, model_class: Type[T]):
        self.db = db
        self.collection_name = collection_name
        self.collection: Collection = db[collection_name]
        self.model_class = model_class

    def _to_model(self, doc: Optional[Dict[str, Any]]) -> Optional[T]:
        if doc is None:
            return None
        return self.model_class.model_validate(doc)

    def find_by_id(self, key: str) -> Optional[T]:
        """Get item by record identifier, None when absent."""
        return self._to_model(self.collection.find_one({"_id": key}))

    def find_many(
        self,
        query: Dict[str, Any],
        sort: Optional[List[tuple]] = None,
        limit: int = 0,
    ) -> List[T]:
        cursor = self.collection.find(query)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return [self._to_model(doc) for doc in cursor]

    def find_many_checked(
        self,
        query: Dict[str, Any],
        sort: Optional[List[tuple]] = None,
    ) -> Tuple[List[T], Dict[str, str]]:
        """
        Like find_many, but a document that fails validation does not fail the
        whole read.

        Returns the valid models and a mapping of `_id` -> validation error for
        the documents that were skipped.
        """
        cursor = self.collection.find(query)
        if sort:
            cursor = cursor.sort(sort)

        models: List[T] = []
        invalid: Dict[str, str] = {}
        for doc in cursor:
            try:
                models.append(self._to_model(doc))
            except ValidationError as e:
                record_id = str(doc.get("_id"))
                logger.warning(f"{self.collection_name}: skipping invalid record {record_id}: {e}")
                invalid[record_id] = str(e)
        return models, invalid

    def add(self, key: str, item: T) -> bool:
        """Insert a new record. Returns False if the key already exists."""
        doc = item.to_mongo()
        doc["_id"] = key
        try:
            result = self.collection.insert_one(doc)
        except DuplicateKeyError:
            logger.warning(f"{self.collection_name}: record {key} already exists")
            return False
        return result.acknowledged

    def upsert(self, key: str, item: T) -> bool:
        """Replace or create the record stored under `key`."""
        doc = item.to_mongo()
        doc["_id"] = key
        result = self.collection.replace_one({"_id": key}, doc, upsert=True)
        return result.acknowledged
