"""Server-rendered pages."""

from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from smartmarks.core.modules.auth.guard import LOGIN_PATH
from smartmarks.core.modules.bookmark.models import BookmarkView
from smartmarks.web.deps import AppDep, OptionalUserDep
from smartmarks.web.templates import HOME_TEMPLATE, LOGIN_TEMPLATE, render_page

router = APIRouter(tags=["pages"], include_in_schema=False)


@router.get("/", response_class=HTMLResponse)
async def home(app: AppDep, user: OptionalUserDep) -> Response:
    """Bookmark page seeded with the current snapshot; the live socket takes over from there."""
    if user is None:
        return RedirectResponse(LOGIN_PATH, status_code=307)
    bookmarks = await app.list_bookmarks(user)
    html = render_page(
        HOME_TEMPLATE,
        user=user.model_dump(),
        bookmarks=[BookmarkView.from_domain(b).model_dump(mode="json") for b in bookmarks],
    )
    return HTMLResponse(html)


@router.get("/login", response_class=HTMLResponse)
async def login(
    app: AppDep,
    error: Annotated[str | None, Query()] = None,
    code: Annotated[str | None, Query()] = None,
    message: Annotated[str | None, Query()] = None,
) -> HTMLResponse:
    html = render_page(LOGIN_TEMPLATE, error=error, code=code, message=message, provider=app.config.oauth_provider)
    return HTMLResponse(html)
