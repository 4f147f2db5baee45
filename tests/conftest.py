"""Shared pytest fixtures and in-memory stand-ins for the external services."""

import asyncio
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient

from smartmarks.app import App
from smartmarks.config import Config
from smartmarks.core.modules.bookmark.models import Bookmark
from smartmarks.core.modules.bookmark.service import validate_bookmark
from smartmarks.core.modules.feed.models import BookmarkKey, ChangeEvent, ChangeOperation
from smartmarks.core.modules.session.models import AuthUser, SessionTokens
from smartmarks.errors import AuthExchangeError, AuthServiceError, BookmarkStoreError
from smartmarks.web.server import create_fastapi_app

OWNER_ID = "87654321-4321-8765-4321-876543218765"
OTHER_OWNER_ID = "12345678-1234-5678-1234-567812345678"


def make_bookmark(title: str = "Example", owner_id: str = OWNER_ID, minutes_ago: int = 0, **kwargs) -> Bookmark:
    return Bookmark(
        title=title,
        url=kwargs.pop("url", f"https://example.com/{title.lower()}"),
        owner_id=owner_id,
        created_at=datetime(2024, 1, 1, 12, 0, tzinfo=UTC) - timedelta(minutes=minutes_ago),
        **kwargs,
    )


def make_tokens(user: AuthUser, suffix: str = "1") -> SessionTokens:
    return SessionTokens(access_token=f"access-{suffix}", refresh_token=f"refresh-{suffix}", expires_in=3600, user=user)


async def settle(rounds: int = 10) -> None:
    """Let background consumer tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeAuthService:
    """Identity provider stand-in keyed by token values."""

    def __init__(self) -> None:
        self.users: dict[str, AuthUser] = {}
        self.refreshable: dict[str, SessionTokens] = {}
        self.codes: dict[str, SessionTokens] = {}
        self.otps: dict[tuple[str, str], SessionTokens] = {}
        self.unavailable = False
        self.magic_links: list[tuple[str, str]] = []
        self.signed_out: list[str] = []

    def _check(self) -> None:
        if self.unavailable:
            raise AuthServiceError("Identity provider unreachable: connection refused")

    async def get_user(self, access_token: str) -> AuthUser | None:
        self._check()
        return self.users.get(access_token)

    async def refresh_session(self, refresh_token: str) -> SessionTokens | None:
        self._check()
        return self.refreshable.get(refresh_token)

    async def exchange_code(self, code: str, code_verifier: str | None) -> SessionTokens:
        self._check()
        if code not in self.codes:
            raise AuthExchangeError("invalid flow state, no valid flow state found")
        return self.codes[code]

    async def verify_otp(self, token_hash: str, otp_type: str) -> SessionTokens:
        self._check()
        if (token_hash, otp_type) not in self.otps:
            raise AuthExchangeError("Email link is invalid or has expired")
        return self.otps[(token_hash, otp_type)]

    async def send_magic_link(self, email: str, redirect_to: str) -> None:
        self._check()
        self.magic_links.append((email, redirect_to))

    async def sign_out(self, access_token: str) -> None:
        self._check()
        self.signed_out.append(access_token)

    def authorize_url(self, provider: str, redirect_to: str, code_challenge: str) -> str:
        query = urlencode({"provider": provider, "redirect_to": redirect_to, "code_challenge": code_challenge})
        return f"https://auth.test/auth/v1/authorize?{query}"


class FakeSubscription:
    def __init__(self, feed: "FakeChangeFeed", owner_id: str) -> None:
        self._feed = feed
        self.owner_id = owner_id
        self.queue: asyncio.Queue[ChangeEvent | Exception | None] = asyncio.Queue()
        self.closed = False

    def __aiter__(self) -> "FakeSubscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.queue.get()
        if event is None:
            raise StopAsyncIteration
        if isinstance(event, Exception):
            raise event
        return event

    def fail(self, error: Exception) -> None:
        """Make the next read raise, as a dropped stream would."""
        self.queue.put_nowait(error)

    async def aclose(self) -> None:
        if not self.closed:
            self.closed = True
            self._feed.active.remove(self)
            self.queue.put_nowait(None)


class FakeChangeFeed:
    """Change feed stand-in delivering events only to the owner's subscriptions."""

    def __init__(self) -> None:
        self.active: list[FakeSubscription] = []
        self.subscribe_count = 0
        self.fail_subscribe = False

    async def subscribe(self, owner_id: str) -> FakeSubscription:
        if self.fail_subscribe:
            raise BookmarkStoreError("Failed to open change feed: not a replica set")
        subscription = FakeSubscription(self, owner_id)
        self.active.append(subscription)
        self.subscribe_count += 1
        return subscription

    def publish(self, owner_id: str, event: ChangeEvent) -> None:
        for subscription in self.active:
            if subscription.owner_id == owner_id:
                subscription.queue.put_nowait(event)


class FakeBookmarkStore:
    """Owner-scoped in-memory store that publishes its writes to a feed."""

    def __init__(self, feed: FakeChangeFeed) -> None:
        self.feed = feed
        self.rows: list[Bookmark] = []
        self.fail_deletes = False
        self.fail_lists = False
        self.list_calls = 0
        self.deleted: list[UUID] = []

    async def list_bookmarks(self, owner_id: str) -> list[Bookmark]:
        self.list_calls += 1
        if self.fail_lists:
            raise BookmarkStoreError("Failed to list bookmarks: connection reset")
        rows = [row for row in self.rows if row.owner_id == owner_id]
        return sorted(rows, key=lambda row: row.created_at, reverse=True)

    async def add_bookmark(self, owner_id: str, title: str, url: str) -> Bookmark:
        title, url = validate_bookmark(title, url)
        bookmark = Bookmark(owner_id=owner_id, title=title, url=url)
        self.rows.append(bookmark)
        self.feed.publish(owner_id, ChangeEvent(operation=ChangeOperation.INSERT, new=bookmark))
        return bookmark

    async def delete_bookmark(self, owner_id: str, bookmark_id: UUID) -> bool:
        if self.fail_deletes:
            raise BookmarkStoreError("Failed to delete bookmark: not primary")
        matches = [row for row in self.rows if row.id == bookmark_id and row.owner_id == owner_id]
        if not matches:
            return False
        self.rows.remove(matches[0])
        self.deleted.append(bookmark_id)
        self.feed.publish(owner_id, ChangeEvent(operation=ChangeOperation.DELETE, old=BookmarkKey(id=bookmark_id)))
        return True


@pytest.fixture
def config():
    return Config(
        database_url="mongodb://localhost:27017/smartmarks_test",
        auth_url="https://auth.test",
        auth_api_key="anon-key",
        site_url="http://test",
    )


@pytest.fixture
def user():
    return AuthUser(id=OWNER_ID, email="owner@example.com", avatar_url="https://example.com/avatar.png")


@pytest.fixture
def fake_auth(user):
    auth = FakeAuthService()
    auth.users["valid-access"] = user
    return auth


@pytest.fixture
def fake_feed():
    return FakeChangeFeed()


@pytest.fixture
def fake_store(fake_feed):
    store = FakeBookmarkStore(fake_feed)
    store.rows = [
        make_bookmark("Older", minutes_ago=10),
        make_bookmark("Newer", minutes_ago=1),
        make_bookmark("Foreign", owner_id=OTHER_OWNER_ID),
    ]
    return store


@pytest.fixture
def app(config, fake_auth, fake_store, fake_feed):
    """App facade with the identity provider, store and feed replaced by fakes."""
    app = App(config)
    services = app._core.services
    services.auth = fake_auth
    services.bookmark = fake_store
    services.feed = fake_feed
    return app


@pytest.fixture
def fastapi_app(app, config):
    return create_fastapi_app(app, config)


@pytest.fixture
async def client(fastapi_app):
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as test_client:
        yield test_client
