"""Live bookmark list: a snapshot kept current by a change subscription.

One LiveBookmarkList backs one open view. All list mutations are synchronous
sections on the event loop, so events are applied one at a time in arrival
order without locking.
"""

import asyncio
from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable, Iterable, Iterator
from contextlib import asynccontextmanager
from typing import Protocol
from uuid import UUID

import structlog

from smartmarks.core.modules.bookmark.models import Bookmark
from smartmarks.core.modules.feed.models import ChangeEvent, ChangeOperation
from smartmarks.errors import BookmarkStoreError

logger = structlog.get_logger(__name__)

ChangeListener = Callable[[list[Bookmark]], Awaitable[None]]
FailureListener = Callable[[], Awaitable[None]]

# Feed failures tolerated per mount before the view is told to give up
MAX_FEED_RESTARTS = 3


class BookmarkSource(Protocol):
    async def list_bookmarks(self, owner_id: str) -> list[Bookmark]: ...

    async def delete_bookmark(self, owner_id: str, bookmark_id: UUID) -> bool: ...


class Subscription(Protocol):
    def __aiter__(self) -> AsyncIterator[ChangeEvent]: ...

    async def aclose(self) -> None: ...


class ChangeFeed(Protocol):
    async def subscribe(self, owner_id: str) -> Subscription: ...


class BookmarkList:
    """Ordered bookmarks, newest first, updated by change events."""

    def __init__(self, snapshot: Iterable[Bookmark] = ()) -> None:
        self._items: list[Bookmark] = list(snapshot)

    def __iter__(self) -> Iterator[Bookmark]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, bookmark_id: object) -> bool:
        return any(item.id == bookmark_id for item in self._items)

    @property
    def items(self) -> list[Bookmark]:
        return list(self._items)

    def replace(self, snapshot: Iterable[Bookmark]) -> None:
        """Drop local state in favour of an authoritative snapshot."""
        self._items = list(snapshot)

    def remove(self, bookmark_id: UUID) -> bool:
        before = len(self._items)
        self._items = [item for item in self._items if item.id != bookmark_id]
        return len(self._items) != before

    def apply(self, event: ChangeEvent) -> bool:
        """Apply one change event. Returns True if the list changed."""
        match event.operation:
            case ChangeOperation.INSERT:
                if event.new is None or event.new.id in self:
                    # Duplicate delivery, e.g. an insert already covered by the snapshot
                    return False
                self._items.insert(0, event.new)
                return True
            case ChangeOperation.DELETE:
                bookmark_id = event.bookmark_id
                return bookmark_id is not None and self.remove(bookmark_id)
            case ChangeOperation.UPDATE:
                if event.new is None:
                    return False
                for index, item in enumerate(self._items):
                    if item.id == event.new.id:
                        self._items[index] = event.new
                        return True
                return False
        return False


class LiveBookmarkList:
    """Per-view state holder that keeps an owner's bookmark list in sync.

    Usage::

        live = LiveBookmarkList(user.id, store, feed, on_change=push, on_failure=close)
        async with live.mounted():
            ...  # events are applied in the background until exit

    A failed change feed is reopened and followed by a refresh. When it
    cannot be reopened (or keeps failing) ``on_failure`` is awaited so the
    view can close instead of showing a list that no longer updates.
    """

    def __init__(
        self,
        owner_id: str,
        store: BookmarkSource,
        feed: ChangeFeed,
        on_change: ChangeListener | None = None,
        snapshot: Iterable[Bookmark] = (),
        on_failure: FailureListener | None = None,
    ) -> None:
        self.owner_id = owner_id
        self._store = store
        self._feed = feed
        self._on_change = on_change
        self._on_failure = on_failure
        self._list = BookmarkList(snapshot)
        self._mounted = False
        self._subscription: Subscription | None = None
        self._consumer: asyncio.Task[None] | None = None

    @property
    def items(self) -> list[Bookmark]:
        return self._list.items

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    async def _notify(self) -> None:
        if self._on_change is not None:
            await self._on_change(self._list.items)

    async def seed(self, snapshot: Iterable[Bookmark]) -> None:
        """Replace local state wholesale with a snapshot."""
        self._list.replace(snapshot)
        await self._notify()

    async def apply(self, event: ChangeEvent) -> None:
        if self._list.apply(event):
            await self._notify()

    async def refresh(self) -> None:
        """Refetch the full snapshot from the store."""
        try:
            snapshot = await self._store.list_bookmarks(self.owner_id)
        except BookmarkStoreError as e:
            logger.error("bookmark_refresh_failed", owner_id=self.owner_id, error=str(e))
            return
        await self.seed(snapshot)

    async def delete(self, bookmark_id: UUID) -> bool:
        """Remove a bookmark optimistically, then delete it in the store.

        On store failure the list is resynchronized from a fresh snapshot
        rather than restored from memory. Returns False in that case.
        """
        if self._list.remove(bookmark_id):
            await self._notify()
        try:
            await self._store.delete_bookmark(self.owner_id, bookmark_id)
        except BookmarkStoreError as e:
            logger.warning("bookmark_delete_failed", bookmark_id=str(bookmark_id), error=str(e))
            await self.refresh()
            return False
        return True

    async def _consume(self) -> None:
        restarts = 0
        while self._subscription is not None:
            try:
                async for event in self._subscription:
                    await self.apply(event)
                return
            except BookmarkStoreError as e:
                logger.error("bookmark_feed_failed", owner_id=self.owner_id, restarts=restarts, error=str(e))
            except Exception:
                logger.exception("bookmark_consumer_crashed", owner_id=self.owner_id)
                await self._fail()
                return

            if restarts >= MAX_FEED_RESTARTS or not await self._resubscribe():
                await self._fail()
                return
            restarts += 1
            # Events between the failure and the new subscription are lost
            await self.refresh()

    async def _resubscribe(self) -> bool:
        failed, self._subscription = self._subscription, None
        if failed is not None:
            await failed.aclose()
        try:
            self._subscription = await self._feed.subscribe(self.owner_id)
        except BookmarkStoreError as e:
            logger.error("bookmark_feed_resubscribe_failed", owner_id=self.owner_id, error=str(e))
            return False
        logger.info("bookmark_feed_resubscribed", owner_id=self.owner_id)
        return True

    async def _fail(self) -> None:
        if self._on_failure is not None:
            await self._on_failure()

    @asynccontextmanager
    async def mounted(self) -> AsyncGenerator["LiveBookmarkList"]:
        """Subscribe for the lifetime of the block, then unsubscribe unconditionally.

        Raises BookmarkStoreError if the feed cannot be opened at all.
        """
        if self._mounted:
            raise RuntimeError("Live list is already mounted")
        self._subscription = await self._feed.subscribe(self.owner_id)
        self._mounted = True
        try:
            self._consumer = asyncio.create_task(self._consume())
            await self.refresh()
            yield self
        finally:
            await self._unmount()

    async def _unmount(self) -> None:
        consumer, self._consumer = self._consumer, None
        try:
            if consumer is not None:
                consumer.cancel()
                results = await asyncio.gather(consumer, return_exceptions=True)
                for result in results:
                    if isinstance(result, Exception):
                        logger.error("bookmark_consumer_crashed", owner_id=self.owner_id, error=str(result))
        finally:
            subscription, self._subscription = self._subscription, None
            self._mounted = False
            if subscription is not None:
                await subscription.aclose()
