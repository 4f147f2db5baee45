"""Session cookie handling for the browser side of the identity provider session."""

from collections.abc import Mapping

from starlette.responses import Response

from smartmarks.core.modules.session.models import SessionCheck, SessionCredentials, SessionTokens

ACCESS_TOKEN_COOKIE = "smartmarks-access-token"
REFRESH_TOKEN_COOKIE = "smartmarks-refresh-token"
CODE_VERIFIER_COOKIE = "smartmarks-code-verifier"

SESSION_MAX_AGE = 30 * 24 * 60 * 60  # The provider decides validity; the cookie only has to outlive it
CODE_VERIFIER_MAX_AGE = 10 * 60


def read_credentials(cookies: Mapping[str, str]) -> SessionCredentials:
    return SessionCredentials(
        access_token=cookies.get(ACCESS_TOKEN_COOKIE) or None,
        refresh_token=cookies.get(REFRESH_TOKEN_COOKIE) or None,
    )


def sets_cookie(response: Response, name: str) -> bool:
    """Whether the response already writes (or deletes) the named cookie."""
    prefix = f"{name}="
    return any(header.startswith(prefix) for header in response.headers.getlist("set-cookie"))


def _set(response: Response, name: str, value: str, max_age: int, secure: bool) -> None:
    response.set_cookie(key=name, value=value, max_age=max_age, httponly=True, samesite="lax", secure=secure, path="/")


def _delete(response: Response, name: str, secure: bool) -> None:
    response.delete_cookie(key=name, httponly=True, samesite="lax", secure=secure, path="/")


def set_session_cookies(response: Response, tokens: SessionTokens, secure: bool) -> None:
    _set(response, ACCESS_TOKEN_COOKIE, tokens.access_token, SESSION_MAX_AGE, secure)
    _set(response, REFRESH_TOKEN_COOKIE, tokens.refresh_token, SESSION_MAX_AGE, secure)


def clear_session_cookies(response: Response, secure: bool) -> None:
    _delete(response, ACCESS_TOKEN_COOKIE, secure)
    _delete(response, REFRESH_TOKEN_COOKIE, secure)


def apply_session_check(response: Response, check: SessionCheck, secure: bool) -> None:
    """Write the guard's cookie changes to the response that is actually returned.

    Cookies the handler already wrote (sign-in, sign-out) take precedence.
    """
    if sets_cookie(response, ACCESS_TOKEN_COOKIE) or sets_cookie(response, REFRESH_TOKEN_COOKIE):
        return
    if check.refreshed is not None:
        set_session_cookies(response, check.refreshed, secure)
    elif check.clear:
        clear_session_cookies(response, secure)


def set_code_verifier(response: Response, verifier: str, secure: bool) -> None:
    _set(response, CODE_VERIFIER_COOKIE, verifier, CODE_VERIFIER_MAX_AGE, secure)


def clear_code_verifier(response: Response, secure: bool) -> None:
    _delete(response, CODE_VERIFIER_COOKIE, secure)
