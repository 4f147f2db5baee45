"""WebSocket view that mounts a live bookmark list for the connected user."""

import json
from collections.abc import AsyncIterator
from typing import Any, cast
from uuid import UUID

import structlog
from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketState

from smartmarks.app import App
from smartmarks.core.modules.bookmark.models import Bookmark, BookmarkView
from smartmarks.core.modules.sync.live_list import LiveBookmarkList
from smartmarks.errors import BookmarkStoreError
from smartmarks.web.cookies import read_credentials

logger = structlog.get_logger(__name__)

router = APIRouter()

UNAUTHENTICATED_CLOSE_CODE = 4401
FEED_UNAVAILABLE_CLOSE_CODE = 1011  # The page reloads after a pause
FEED_UNAVAILABLE_REASON = "Live updates unavailable"


def parse_message(text: str | None) -> Any:
    """Decode a client frame; binary frames and anything that is not JSON become None."""
    if text is None:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


async def iter_frames(websocket: WebSocket) -> AsyncIterator[str | None]:
    """Yield client frames until either side closes the socket."""
    while websocket.application_state == WebSocketState.CONNECTED:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
        yield message.get("text")


async def handle_message(live: LiveBookmarkList, message: Any) -> str | None:
    """Apply one client message. Returns an error text for malformed messages."""
    if not isinstance(message, dict):
        return "Message must be a JSON object"
    action = message.get("action")
    if action == "refresh":
        await live.refresh()
        return None
    if action == "delete":
        try:
            bookmark_id = UUID(str(message.get("id")))
        except ValueError:
            return "Invalid bookmark id"
        await live.delete(bookmark_id)
        return None
    return f"Unknown action: {action}"


@router.websocket("/ws/bookmarks")
async def live_bookmarks(websocket: WebSocket) -> None:
    """Push the user's bookmark list on every change until the socket closes.

    Cookies cannot be refreshed over a socket, so the page load (which passes
    the session guard) is expected to have refreshed them already.
    """
    app = cast(App, websocket.app.state.app)
    check = await app.verify_session(read_credentials(websocket.cookies))
    await websocket.accept()
    if check.user is None:
        await websocket.close(code=UNAUTHENTICATED_CLOSE_CODE)
        return

    async def push(items: list[Bookmark]) -> None:
        if websocket.application_state != WebSocketState.CONNECTED:
            return
        payload = [BookmarkView.from_domain(item).model_dump(mode="json") for item in items]
        await websocket.send_json({"type": "bookmarks", "items": payload})

    async def close_unavailable() -> None:
        if websocket.application_state == WebSocketState.CONNECTED:
            await websocket.close(code=FEED_UNAVAILABLE_CLOSE_CODE, reason=FEED_UNAVAILABLE_REASON)

    live = app.open_live_list(check.user, on_change=push, on_failure=close_unavailable)
    logger.debug("live_list_mounting", user_id=check.user.id)
    try:
        async with live.mounted():
            async for text in iter_frames(websocket):
                error = await handle_message(live, parse_message(text))
                if error is not None and websocket.application_state == WebSocketState.CONNECTED:
                    await websocket.send_json({"type": "error", "message": error})
    except BookmarkStoreError as e:
        logger.error("live_list_unavailable", user_id=check.user.id, error=str(e))
        await close_unavailable()
        return
    logger.debug("live_list_unmounted", user_id=check.user.id)
