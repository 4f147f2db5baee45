from typing import cast

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import RedirectResponse, Response

from smartmarks.app import App
from smartmarks.core.modules.auth.guard import resolve_route
from smartmarks.web.cookies import apply_session_check, read_credentials

logger = structlog.get_logger(__name__)


class SessionGuardMiddleware(BaseHTTPMiddleware):
    """Verifies the session on every HTTP request and enforces the login boundary.

    Order per request: read cookies, verify with the identity provider, then
    write refreshed or cleared cookies onto whichever response is returned.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        app = cast(App, request.app.state.app)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(path=request.url.path)

        check = await app.verify_session(read_credentials(request.cookies))
        request.state.user = check.user
        if check.user is not None:
            structlog.contextvars.bind_contextvars(user_id=check.user.id)

        target = resolve_route(request.url.path, check.is_authenticated)
        if target is not None:
            # Only the path changes; the query travels along
            location = f"{target}?{request.url.query}" if request.url.query else target
            logger.debug("session_guard_redirect", target=location)
            response: Response = RedirectResponse(location, status_code=307)
        else:
            response = await call_next(request)

        apply_session_check(response, check, secure=app.config.cookie_secure)
        return response
