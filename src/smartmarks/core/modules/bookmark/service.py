from typing import Any
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import OperationFailure, PyMongoError

from smartmarks.core.core import Service
from smartmarks.core.modules.bookmark.models import Bookmark
from smartmarks.errors import BookmarkStoreError, ValidationError
from smartmarks.utils import is_http_url

logger = structlog.get_logger(__name__)

COLLECTION_NAME = "bookmarks"
MAX_TITLE_LENGTH = 500
MAX_URL_LENGTH = 2048


def validate_bookmark(title: str, url: str) -> tuple[str, str]:
    """Normalize and validate user input for a new bookmark."""
    title = title.strip()
    url = url.strip()
    if not title:
        raise ValidationError("Title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    if len(url) > MAX_URL_LENGTH or not is_http_url(url):
        raise ValidationError("URL must be a valid http(s) address")
    return title, url


class BookmarkService(Service):
    """Owner-scoped bookmark storage.

    Every query filters on owner_id, so callers never see or touch rows of
    other users.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection(COLLECTION_NAME)

    async def on_start(self) -> None:
        """Create indexes and enable before-images for owner-scoped delete events."""
        # Creating the index also creates the collection, which collMod requires
        await self._collection.create_index([("owner_id", 1), ("created_at", -1)])
        try:
            await self.database.command({"collMod": COLLECTION_NAME, "changeStreamPreAndPostImages": {"enabled": True}})
        except OperationFailure as e:
            # Pre-6.0 servers: delete events cannot be scoped to an owner and are dropped by the feed
            logger.warning("bookmark_preimages_unavailable", error=str(e))

    async def list_bookmarks(self, owner_id: str) -> list[Bookmark]:
        """Get all bookmarks of the owner, newest first."""
        try:
            cursor = self._collection.find({"owner_id": owner_id}).sort("created_at", -1)
            return await Bookmark.list_cursor(cursor)
        except PyMongoError as e:
            raise BookmarkStoreError(f"Failed to list bookmarks: {e}") from e

    async def add_bookmark(self, owner_id: str, title: str, url: str) -> Bookmark:
        """Validate and insert a new bookmark for the owner."""
        title, url = validate_bookmark(title, url)
        bookmark = Bookmark(owner_id=owner_id, title=title, url=url)
        try:
            await self._collection.insert_one(bookmark.to_mongo())
        except PyMongoError as e:
            raise BookmarkStoreError(f"Failed to add bookmark: {e}") from e
        logger.debug("bookmark_added", bookmark_id=str(bookmark.id))
        return bookmark

    async def delete_bookmark(self, owner_id: str, bookmark_id: UUID) -> bool:
        """Delete a bookmark of the owner. Returns False if no such bookmark exists."""
        try:
            result = await self._collection.delete_one({"_id": bookmark_id, "owner_id": owner_id})
        except PyMongoError as e:
            raise BookmarkStoreError(f"Failed to delete bookmark: {e}") from e
        return result.deleted_count > 0
