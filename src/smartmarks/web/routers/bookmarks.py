"""Bookmark JSON API used by the page's add form and by API clients."""

from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel, Field

from smartmarks.core.modules.bookmark.models import BookmarkView
from smartmarks.web.deps import AppDep, CurrentUserDep
from smartmarks.web.openapi import ErrorResponse

router: APIRouter = APIRouter(tags=["bookmarks"])


class CreateBookmarkRequest(BaseModel):
    """Request to save a new bookmark."""

    title: str = Field(..., description="Display title", min_length=1)
    url: str = Field(..., description="http(s) URL to save", min_length=1)


@router.get(
    "/bookmarks",
    summary="List bookmarks",
    description="Get all bookmarks of the current user, newest first.",
    operation_id="listBookmarks",
    responses={
        200: {"description": "Bookmarks of the current user"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def list_bookmarks(app: AppDep, user: CurrentUserDep) -> list[BookmarkView]:
    bookmarks = await app.list_bookmarks(user)
    return [BookmarkView.from_domain(bookmark) for bookmark in bookmarks]


@router.post(
    "/bookmarks",
    summary="Add bookmark",
    description="Save a new bookmark. Open live lists receive it through the change feed.",
    operation_id="createBookmark",
    status_code=201,
    responses={
        201: {"description": "Bookmark created"},
        400: {"model": ErrorResponse, "description": "Invalid title or URL"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def create_bookmark(request: CreateBookmarkRequest, app: AppDep, user: CurrentUserDep) -> BookmarkView:
    bookmark = await app.add_bookmark(user, request.title, request.url)
    return BookmarkView.from_domain(bookmark)


@router.delete(
    "/bookmarks/{bookmark_id}",
    summary="Delete bookmark",
    operation_id="deleteBookmark",
    status_code=204,
    responses={
        204: {"description": "Bookmark deleted"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Bookmark not found"},
    },
)
async def delete_bookmark(bookmark_id: UUID, app: AppDep, user: CurrentUserDep) -> None:
    await app.delete_bookmark(user, bookmark_id)
