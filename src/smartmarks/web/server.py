from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from smartmarks.app import App
from smartmarks.config import Config
from smartmarks.errors import UpstreamError, UserError
from smartmarks.web.error_handlers import (
    general_exception_handler,
    request_validation_handler,
    upstream_error_handler,
    user_error_handler,
)
from smartmarks.web.middleware import SessionGuardMiddleware
from smartmarks.web.openapi import set_custom_openapi
from smartmarks.web.routers import auth_router, bookmarks_router, live_router, pages_router


def create_fastapi_app(app_instance: App, config: Config) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncGenerator[None]:
        async with app_instance.lifespan():
            yield

    app = FastAPI(title="SmartMarks", lifespan=lifespan)
    # Set before startup so the middleware and websocket routes can reach the facade
    app.state.app = app_instance

    app.add_middleware(SessionGuardMiddleware)

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/health", include_in_schema=False)
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    app.include_router(pages_router)
    app.include_router(auth_router)
    app.include_router(bookmarks_router, prefix="/api/v1")
    app.include_router(live_router)

    app.add_exception_handler(UserError, user_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(UpstreamError, upstream_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    set_custom_openapi(app)

    return app
