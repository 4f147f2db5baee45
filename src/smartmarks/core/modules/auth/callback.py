"""Decision table for the auth callback endpoint.

The shapes are checked in a fixed order and the first match wins:

1. ``code``                       -> PKCE code exchange
2. ``token_hash`` + ``type``      -> OTP verification
3. ``error_code`` / ``error_description`` -> provider-reported failure
4. anything else                  -> bare ``error=auth`` marker

A failed exchange is terminal for the request; the user starts over from the login page.
"""

from typing import Protocol

import structlog

from smartmarks.core.modules.auth.guard import LOGIN_PATH
from smartmarks.core.modules.auth.models import CallbackOutcome, CallbackParams
from smartmarks.core.modules.session.models import SessionTokens
from smartmarks.errors import AuthExchangeError, AuthServiceError
from smartmarks.utils import encode_uri_component, safe_next_path

logger = structlog.get_logger(__name__)

DEFAULT_ERROR_CODE = "unknown"
DEFAULT_ERROR_MESSAGE = "Authentication failed"


class SessionExchanger(Protocol):
    async def exchange_code(self, code: str, code_verifier: str | None) -> SessionTokens: ...

    async def verify_otp(self, token_hash: str, otp_type: str) -> SessionTokens: ...


def login_error_location(message: str | None = None, code: str | None = None) -> str:
    """Build the login redirect carrying an encoded failure description."""
    location = f"{LOGIN_PATH}?error=auth"
    if code is not None:
        location += f"&code={encode_uri_component(code)}"
    if message is not None:
        location += f"&message={encode_uri_component(message)}"
    return location


async def reconcile_callback(
    params: CallbackParams, auth: SessionExchanger, code_verifier: str | None = None
) -> CallbackOutcome:
    """Turn callback parameters into a redirect, exchanging them for a session when possible."""
    success_location = safe_next_path(params.next)

    if params.code:
        try:
            session = await auth.exchange_code(params.code, code_verifier)
        except (AuthExchangeError, AuthServiceError) as e:
            logger.warning("auth_callback_failed", flow="code", error=str(e))
            return CallbackOutcome(location=login_error_location(message=str(e)))
        logger.info("auth_callback_succeeded", flow="code", user_id=session.user.id)
        return CallbackOutcome(location=success_location, session=session)

    if params.token_hash and params.type:
        try:
            session = await auth.verify_otp(params.token_hash, params.type)
        except (AuthExchangeError, AuthServiceError) as e:
            logger.warning("auth_callback_failed", flow="otp", otp_type=params.type, error=str(e))
            return CallbackOutcome(location=login_error_location(message=str(e)))
        logger.info("auth_callback_succeeded", flow="otp", user_id=session.user.id)
        return CallbackOutcome(location=success_location, session=session)

    if params.error_code or params.error_description:
        logger.warning("auth_provider_error", error_code=params.error_code, error_description=params.error_description)
        return CallbackOutcome(
            location=login_error_location(
                message=params.error_description or DEFAULT_ERROR_MESSAGE,
                code=params.error_code or DEFAULT_ERROR_CODE,
            )
        )

    logger.warning("auth_callback_malformed")
    return CallbackOutcome(location=login_error_location())
