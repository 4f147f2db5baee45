from typing import Any

import pydantic
import structlog
from pymongo.asynchronous.change_stream import AsyncChangeStream
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from smartmarks.core.core import Service
from smartmarks.core.modules.bookmark.service import COLLECTION_NAME
from smartmarks.core.modules.feed.models import ChangeEvent
from smartmarks.errors import BookmarkStoreError

logger = structlog.get_logger(__name__)


def owner_pipeline(owner_id: str) -> list[dict[str, Any]]:
    """Change stream pipeline limited to rows of one owner.

    Deletes are matched through their before-image, which the bookmark service
    enables on startup.
    """
    return [
        {
            "$match": {
                "operationType": {"$in": ["insert", "update", "replace", "delete"]},
                "$or": [
                    {"fullDocument.owner_id": owner_id},
                    {"fullDocumentBeforeChange.owner_id": owner_id},
                ],
            }
        }
    ]


class ChangeStreamSubscription:
    """Async iterator of ChangeEvent over one MongoDB change stream."""

    def __init__(self, feed: "ChangeFeedService", stream: AsyncChangeStream[dict[str, Any]], owner_id: str) -> None:
        self._feed = feed
        self._stream = stream
        self.owner_id = owner_id
        self.closed = False

    def __aiter__(self) -> "ChangeStreamSubscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        while True:
            try:
                change = await self._stream.next()
            except PyMongoError as e:
                raise BookmarkStoreError(f"Change feed failed: {e}") from e
            try:
                event = ChangeEvent.from_change(change)
            except pydantic.ValidationError as e:
                # Row written outside this app with an unexpected shape
                logger.warning("feed_event_skipped", owner_id=self.owner_id, error=str(e))
                continue
            if event is not None:
                return event

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed.release(self)
        await self._stream.close()


class ChangeFeedService(Service):
    """Opens owner-scoped change subscriptions on the bookmarks collection."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._active: set[ChangeStreamSubscription] = set()

    async def subscribe(self, owner_id: str) -> ChangeStreamSubscription:
        """Start watching the owner's rows. The caller must aclose() the subscription."""
        collection = self.database.get_collection(COLLECTION_NAME)
        try:
            stream = await collection.watch(
                owner_pipeline(owner_id),
                full_document="updateLookup",
                full_document_before_change="whenAvailable",
            )
        except PyMongoError as e:
            raise BookmarkStoreError(f"Failed to open change feed: {e}") from e
        subscription = ChangeStreamSubscription(self, stream, owner_id)
        self._active.add(subscription)
        logger.debug("feed_subscribed", owner_id=owner_id, active=len(self._active))
        return subscription

    def release(self, subscription: ChangeStreamSubscription) -> None:
        self._active.discard(subscription)
        logger.debug("feed_unsubscribed", owner_id=subscription.owner_id, active=len(self._active))

    async def on_stop(self) -> None:
        """Close subscriptions still open at shutdown."""
        for subscription in list(self._active):
            await subscription.aclose()
