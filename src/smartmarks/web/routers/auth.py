"""Sign-in, callback and sign-out endpoints. All of them are browser redirect flows."""

from typing import Annotated

from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from smartmarks.core.modules.auth.guard import LOGIN_PATH
from smartmarks.core.modules.auth.models import CallbackParams
from smartmarks.web.cookies import (
    CODE_VERIFIER_COOKIE,
    clear_code_verifier,
    clear_session_cookies,
    read_credentials,
    set_code_verifier,
    set_session_cookies,
)
from smartmarks.web.deps import AppDep
from smartmarks.web.openapi import ErrorResponse

router = APIRouter(tags=["auth"])


class MagicLinkRequest(BaseModel):
    """Email sign-in link request."""

    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$", description="Email address")
    next: str | None = Field(None, description="Local path to land on after sign-in")


class MagicLinkResponse(BaseModel):
    status: str = Field("sent", description="Always 'sent' once the provider accepted the request")


@router.get(
    "/auth/callback",
    summary="Complete sign-in",
    description=(
        "Redirect target of the identity provider. Exchanges an OAuth code or an OTP token hash for a "
        "session, or forwards a provider error to the login page."
    ),
    operation_id="authCallback",
    response_class=RedirectResponse,
    status_code=302,
)
async def auth_callback(
    request: Request, app: AppDep, params: Annotated[CallbackParams, Query()]
) -> RedirectResponse:
    outcome = await app.reconcile_callback(params, request.cookies.get(CODE_VERIFIER_COOKIE))
    response = RedirectResponse(outcome.location, status_code=302)
    if outcome.session is not None:
        set_session_cookies(response, outcome.session, secure=app.config.cookie_secure)
    clear_code_verifier(response, secure=app.config.cookie_secure)
    return response


@router.get(
    "/auth/signin",
    summary="Start OAuth sign-in",
    description="Redirect to the identity provider with a fresh PKCE challenge.",
    operation_id="signIn",
    response_class=RedirectResponse,
    status_code=302,
)
async def sign_in(
    app: AppDep,
    provider: Annotated[str | None, Query(description="OAuth provider, defaults to the configured one")] = None,
    next_path: Annotated[str | None, Query(alias="next", description="Local path to land on after sign-in")] = None,
) -> RedirectResponse:
    start = app.start_sign_in(provider, next_path)
    response = RedirectResponse(start.authorize_url, status_code=302)
    set_code_verifier(response, start.code_verifier, secure=app.config.cookie_secure)
    return response


@router.post(
    "/auth/magic-link",
    summary="Email a sign-in link",
    operation_id="sendMagicLink",
    responses={
        200: {"description": "Link sent"},
        400: {"model": ErrorResponse, "description": "Rejected by the identity provider"},
    },
)
async def send_magic_link(request: MagicLinkRequest, app: AppDep) -> MagicLinkResponse:
    await app.send_magic_link(request.email, request.next)
    return MagicLinkResponse(status="sent")


@router.post(
    "/auth/signout",
    summary="Sign out",
    description="Revoke the session and return to the login page.",
    operation_id="signOut",
    response_class=RedirectResponse,
    status_code=303,
)
async def sign_out(request: Request, app: AppDep) -> RedirectResponse:
    await app.sign_out(read_credentials(request.cookies))
    response = RedirectResponse(LOGIN_PATH, status_code=303)
    clear_session_cookies(response, secure=app.config.cookie_secure)
    return response
