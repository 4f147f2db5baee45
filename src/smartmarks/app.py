from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from urllib.parse import urlencode
from uuid import UUID

import structlog

from smartmarks.config import Config
from smartmarks.core.core import Core
from smartmarks.core.modules.auth.callback import reconcile_callback
from smartmarks.core.modules.auth.models import CallbackOutcome, CallbackParams, SignInStart
from smartmarks.core.modules.auth.pkce import code_challenge, generate_code_verifier
from smartmarks.core.modules.bookmark.models import Bookmark
from smartmarks.core.modules.session.models import AuthUser, SessionCheck, SessionCredentials
from smartmarks.core.modules.sync.live_list import ChangeListener, FailureListener, LiveBookmarkList
from smartmarks.errors import AuthServiceError, NotFoundError
from smartmarks.utils import safe_next_path

logger = structlog.get_logger(__name__)


class App:
    """Facade for all application operations. Callers pass the verified user explicitly."""

    def __init__(self, config: Config) -> None:
        self._core = Core(config)

    @property
    def config(self) -> Config:
        return self._core.config

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    # === Session and sign-in ===
    async def verify_session(self, credentials: SessionCredentials) -> SessionCheck:
        """Verify (and refresh if needed) the session behind the browser's tokens."""
        return await self._core.services.session.verify_session(credentials)

    async def reconcile_callback(self, params: CallbackParams, code_verifier: str | None) -> CallbackOutcome:
        """Turn an identity provider callback into a redirect and, on success, a session."""
        return await reconcile_callback(params, self._core.services.auth, code_verifier)

    def start_sign_in(self, provider: str | None = None, next_path: str | None = None) -> SignInStart:
        """Build the OAuth authorize URL and the PKCE verifier to keep in the browser."""
        verifier = generate_code_verifier()
        url = self._core.services.auth.authorize_url(
            provider or self.config.oauth_provider, self._callback_url(next_path), code_challenge(verifier)
        )
        return SignInStart(authorize_url=url, code_verifier=verifier)

    async def send_magic_link(self, email: str, next_path: str | None = None) -> None:
        """Email a one-time sign-in link that returns to the callback endpoint."""
        await self._core.services.auth.send_magic_link(email, self._callback_url(next_path))

    async def sign_out(self, credentials: SessionCredentials) -> None:
        """Revoke the session at the identity provider (best effort)."""
        if not credentials.access_token:
            return
        try:
            await self._core.services.auth.sign_out(credentials.access_token)
        except AuthServiceError as e:
            logger.warning("sign_out_failed", error=str(e))

    # === Bookmarks ===
    async def list_bookmarks(self, user: AuthUser) -> list[Bookmark]:
        """Get the user's bookmarks, newest first."""
        return await self._core.services.bookmark.list_bookmarks(user.id)

    async def add_bookmark(self, user: AuthUser, title: str, url: str) -> Bookmark:
        return await self._core.services.bookmark.add_bookmark(user.id, title, url)

    async def delete_bookmark(self, user: AuthUser, bookmark_id: UUID) -> None:
        """Delete one of the user's bookmarks."""
        if not await self._core.services.bookmark.delete_bookmark(user.id, bookmark_id):
            raise NotFoundError(f"Bookmark '{bookmark_id}' not found")

    def open_live_list(
        self, user: AuthUser, on_change: ChangeListener | None = None, on_failure: FailureListener | None = None
    ) -> LiveBookmarkList:
        """Create a live list for one view; mount it to start receiving changes."""
        services = self._core.services
        return LiveBookmarkList(user.id, services.bookmark, services.feed, on_change=on_change, on_failure=on_failure)

    # === Private helpers ===
    def _callback_url(self, next_path: str | None) -> str:
        query = urlencode({"next": safe_next_path(next_path)})
        return f"{self.config.site_url.rstrip('/')}/auth/callback?{query}"
