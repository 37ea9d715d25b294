"""Base entity shared by every record stored in MongoDB."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class BaseEntity(BaseModel):
    """
    Base for MongoDB-backed records.

    Records are keyed by their composite record identifier, which is stored as
    the document `_id` and exposed as `id`.
    """

    id: Optional[str] = Field(None, alias="_id")

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True

    def to_mongo(self) -> Dict[str, Any]:
        """Document form: `_id` key, native datetimes, enum values."""
        doc = self.model_dump(by_alias=True, exclude_none=False)
        if doc.get("_id") is None:
            doc.pop("_id", None)
        return doc
