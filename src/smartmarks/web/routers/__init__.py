from smartmarks.web.routers.auth import router as auth_router
from smartmarks.web.routers.bookmarks import router as bookmarks_router
from smartmarks.web.routers.live import router as live_router
from smartmarks.web.routers.pages import router as pages_router

__all__ = [
    "auth_router",
    "bookmarks_router",
    "live_router",
    "pages_router",
]
