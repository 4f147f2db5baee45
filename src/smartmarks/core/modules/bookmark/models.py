from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from smartmarks.core.db import MongoModel
from smartmarks.utils import now


class Bookmark(MongoModel):
    """Saved link owned by a single user.

    Indexed on (owner_id, created_at desc) for the per-user list query.
    """

    owner_id: str  # Identity provider user ID
    title: str
    url: str
    created_at: datetime = Field(default_factory=now)


class BookmarkView(BaseModel):
    """Bookmark as shown to its owner (API representation)."""

    id: UUID = Field(..., description="Bookmark ID")
    title: str = Field(..., description="Display title")
    url: str = Field(..., description="Target URL")
    created_at: datetime = Field(..., description="Creation time")

    @classmethod
    def from_domain(cls, bookmark: Bookmark) -> "BookmarkView":
        """Create view model from domain model."""
        return cls(id=bookmark.id, title=bookmark.title, url=bookmark.url, created_at=bookmark.created_at)
