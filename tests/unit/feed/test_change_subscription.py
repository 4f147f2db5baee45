"""Tests for owner subscriptions over a MongoDB change stream."""

from typing import Any

import pytest
from pymongo.errors import AutoReconnect, OperationFailure

from conftest import OWNER_ID, make_bookmark
from smartmarks.core.modules.feed.models import ChangeOperation
from smartmarks.core.modules.feed.service import ChangeFeedService
from smartmarks.errors import BookmarkStoreError


class ScriptedStream:
    """Change stream stand-in returning queued documents, or raising queued errors."""

    def __init__(self, *items: dict[str, Any] | Exception) -> None:
        self.items = list(items)
        self.close_calls = 0

    async def next(self) -> dict[str, Any]:
        item = self.items.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.close_calls += 1


class ScriptedCollection:
    def __init__(self, stream: ScriptedStream | None = None, error: Exception | None = None) -> None:
        self.stream = stream
        self.error = error
        self.pipelines: list[list[dict[str, Any]]] = []

    async def watch(self, pipeline: list[dict[str, Any]], **kwargs: Any) -> ScriptedStream:
        self.pipelines.append(pipeline)
        if self.error is not None:
            raise self.error
        assert self.stream is not None
        return self.stream


class ScriptedDatabase:
    def __init__(self, collection: ScriptedCollection) -> None:
        self.collection = collection

    def get_collection(self, name: str) -> ScriptedCollection:
        return self.collection


def make_feed(stream: ScriptedStream | None = None, error: Exception | None = None) -> ChangeFeedService:
    return ChangeFeedService(ScriptedDatabase(ScriptedCollection(stream, error)))  # type: ignore[arg-type]


def insert_of(title: str) -> dict[str, Any]:
    return {"operationType": "insert", "fullDocument": make_bookmark(title).to_mongo()}


class TestSubscribe:
    async def test_open_failure_is_a_store_error(self):
        feed = make_feed(error=OperationFailure("The $changeStream stage is only supported on replica sets"))

        with pytest.raises(BookmarkStoreError, match="Failed to open change feed"):
            await feed.subscribe(OWNER_ID)

    async def test_events_are_converted(self):
        subscription = await make_feed(ScriptedStream(insert_of("First"))).subscribe(OWNER_ID)

        event = await anext(subscription)

        assert event.operation is ChangeOperation.INSERT
        assert event.new is not None
        assert event.new.title == "First"


class TestIteration:
    async def test_malformed_row_is_skipped(self):
        """Test that a document that does not validate as a bookmark is dropped, not fatal."""
        stream = ScriptedStream(
            {"operationType": "insert", "fullDocument": {"_id": "not-a-uuid", "title": 42}},
            insert_of("Valid"),
        )
        subscription = await make_feed(stream).subscribe(OWNER_ID)

        event = await anext(subscription)

        assert event.new is not None
        assert event.new.title == "Valid"

    async def test_rows_without_image_are_skipped(self):
        stream = ScriptedStream(
            {"operationType": "update", "fullDocument": None},
            {"operationType": "drop"},
            insert_of("Kept"),
        )
        subscription = await make_feed(stream).subscribe(OWNER_ID)

        event = await anext(subscription)

        assert event.new is not None
        assert event.new.title == "Kept"

    async def test_stream_error_is_a_store_error(self):
        subscription = await make_feed(ScriptedStream(AutoReconnect("connection reset"))).subscribe(OWNER_ID)

        with pytest.raises(BookmarkStoreError, match="Change feed failed"):
            await anext(subscription)


class TestRelease:
    async def test_aclose_is_idempotent(self):
        stream = ScriptedStream()
        feed = make_feed(stream)
        subscription = await feed.subscribe(OWNER_ID)

        await subscription.aclose()
        await subscription.aclose()

        assert subscription.closed
        assert stream.close_calls == 1

    async def test_stop_closes_open_subscriptions(self):
        stream = ScriptedStream()
        feed = make_feed(stream)
        subscription = await feed.subscribe(OWNER_ID)

        await feed.on_stop()

        assert subscription.closed
        assert stream.close_calls == 1
