from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from smartmarks.core.modules.bookmark.models import Bookmark


class ChangeOperation(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


# MongoDB operationType -> ChangeOperation; a replace is an update of the whole row
_OPERATIONS = {
    "insert": ChangeOperation.INSERT,
    "update": ChangeOperation.UPDATE,
    "replace": ChangeOperation.UPDATE,
    "delete": ChangeOperation.DELETE,
}


class BookmarkKey(BaseModel):
    """Identity of a row that no longer has a current image."""

    id: UUID = Field(alias="_id")

    model_config = ConfigDict(populate_by_name=True)


class ChangeEvent(BaseModel):
    """Row-level change on the bookmarks collection."""

    operation: ChangeOperation
    new: Bookmark | None = None  # Row after the change (INSERT, UPDATE)
    old: BookmarkKey | None = None  # Row before the change (DELETE)

    @property
    def bookmark_id(self) -> UUID | None:
        if self.new is not None:
            return self.new.id
        if self.old is not None:
            return self.old.id
        return None

    @classmethod
    def from_change(cls, change: dict[str, Any]) -> "ChangeEvent | None":
        """Convert a MongoDB change stream document; None for events that carry no row."""
        operation = _OPERATIONS.get(change.get("operationType", ""))
        if operation is None:
            return None
        if operation is ChangeOperation.DELETE:
            key = change.get("documentKey")
            if not key:
                return None
            return cls(operation=operation, old=BookmarkKey.model_validate(key))
        new = Bookmark.from_mongo(change.get("fullDocument"))
        if new is None:
            # Update whose row was deleted before the lookup; the delete event follows
            return None
        return cls(operation=operation, new=new)
