import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from smartmarks.errors import (
    AuthenticationError,
    AuthExchangeError,
    AuthServiceError,
    BookmarkStoreError,
    NotFoundError,
    UserError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Checked in order; anything else derived from UserError is a plain 400
USER_ERROR_STATUS: tuple[tuple[type[UserError], int, str], ...] = (
    (AuthenticationError, 401, "authentication_error"),
    (NotFoundError, 404, "not_found"),
    (ValidationError, 400, "validation_error"),
    (AuthExchangeError, 400, "auth_exchange_error"),
)

UPSTREAM_MESSAGES = {
    AuthServiceError: "Sign-in is temporarily unavailable.",
    BookmarkStoreError: "Bookmarks are temporarily unavailable.",
}


def create_json_error_response(status_code: int, message: str, error_type: str | None = None) -> JSONResponse:
    """Create JSON error response with optional type for machine parsing."""
    content = {"message": message}
    if error_type:
        content["type"] = error_type
    return JSONResponse(status_code=status_code, content=content)


async def user_error_handler(_: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    for error_class, status_code, error_type in USER_ERROR_STATUS:
        if isinstance(exc, error_class):
            return create_json_error_response(status_code, str(exc), error_type)
    return create_json_error_response(400, str(exc), "bad_request")


async def request_validation_handler(_: Request, exc: Exception) -> Response:
    """Report malformed request bodies in the same {message, type} shape the pages read."""
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "request"
        message = f"{field}: {first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request"
    return create_json_error_response(422, message, "validation_error")


async def upstream_error_handler(_: Request, exc: Exception) -> Response:
    """Handle identity provider and store outages (503) without leaking driver details."""
    logger.error("Upstream error (%s): %s", type(exc).__name__, exc)
    message = UPSTREAM_MESSAGES.get(type(exc), "A required service is temporarily unavailable.")
    return create_json_error_response(503, message, "service_unavailable")


async def general_exception_handler(_: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    logger.exception("Unexpected error: %s", exc)
    return create_json_error_response(500, "An unexpected error occurred.", "internal_server_error")
