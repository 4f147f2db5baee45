from collections.abc import Callable
from typing import Any, TypeVar
from urllib.parse import urlencode

import httpx
import structlog

from smartmarks.core.core import Service
from smartmarks.core.modules.session.models import AuthUser, SessionTokens
from smartmarks.errors import AuthExchangeError, AuthServiceError, ValidationError

logger = structlog.get_logger(__name__)

API_PREFIX = "/auth/v1"

T = TypeVar("T")


def _error_message(response: httpx.Response) -> str:
    """Extract a human-readable message from a provider error payload."""
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        for key in ("msg", "error_description", "message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return f"HTTP {response.status_code}"


class AuthService(Service):
    """HTTP client for the GoTrue-compatible identity provider.

    4xx answers mean the provider rejected the credential; 5xx answers and
    transport failures raise AuthServiceError.
    """

    _client: httpx.AsyncClient | None = None

    async def on_start(self) -> None:
        self.start_client()

    async def on_stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def start_client(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Create the HTTP client from config. A transport may be injected for tests."""
        config = self.core.config
        self._client = httpx.AsyncClient(
            base_url=config.auth_url.rstrip("/") + API_PREFIX,
            headers={"apikey": config.auth_api_key},
            timeout=config.auth_timeout,
            transport=transport,
        )

    @staticmethod
    def _parse(response: httpx.Response, factory: Callable[[dict[str, Any]], T]) -> T:
        """Build a model from a success payload; malformed payloads count as a provider failure."""
        try:
            return factory(response.json())
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise AuthServiceError(f"Unexpected identity provider response: {e}") from e

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Auth client not started")
        return self._client

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise AuthServiceError(f"Identity provider unreachable: {e}") from e
        if response.status_code >= 500:
            raise AuthServiceError(f"Identity provider error {response.status_code}: {_error_message(response)}")
        return response

    async def get_user(self, access_token: str) -> AuthUser | None:
        """Return the user for a valid access token, None if the token is rejected."""
        response = await self._request("GET", "/user", headers={"Authorization": f"Bearer {access_token}"})
        if response.is_client_error:
            return None
        return self._parse(response, AuthUser.from_provider)

    async def refresh_session(self, refresh_token: str) -> SessionTokens | None:
        """Trade a refresh token for a new token pair, None if it is rejected."""
        response = await self._request(
            "POST", "/token", params={"grant_type": "refresh_token"}, json={"refresh_token": refresh_token}
        )
        if response.is_client_error:
            logger.debug("refresh_rejected", status=response.status_code, error=_error_message(response))
            return None
        return self._parse(response, SessionTokens.from_provider)

    async def exchange_code(self, code: str, code_verifier: str | None) -> SessionTokens:
        """Exchange an OAuth authorization code for a session (PKCE flow)."""
        if not code_verifier:
            raise AuthExchangeError("Sign-in session expired, please try again")
        response = await self._request(
            "POST", "/token", params={"grant_type": "pkce"}, json={"auth_code": code, "code_verifier": code_verifier}
        )
        if response.is_client_error:
            raise AuthExchangeError(_error_message(response))
        return self._parse(response, SessionTokens.from_provider)

    async def verify_otp(self, token_hash: str, otp_type: str) -> SessionTokens:
        """Verify a one-time token hash from an email link."""
        response = await self._request("POST", "/verify", json={"type": otp_type, "token_hash": token_hash})
        if response.is_client_error:
            raise AuthExchangeError(_error_message(response))
        return self._parse(response, SessionTokens.from_provider)

    async def send_magic_link(self, email: str, redirect_to: str) -> None:
        """Ask the provider to email a sign-in link that returns to redirect_to."""
        response = await self._request(
            "POST", "/otp", params={"redirect_to": redirect_to}, json={"email": email, "create_user": True}
        )
        if response.is_client_error:
            raise ValidationError(_error_message(response))

    async def sign_out(self, access_token: str) -> None:
        """Revoke the session behind the access token. Already-invalid tokens are ignored."""
        response = await self._request("POST", "/logout", headers={"Authorization": f"Bearer {access_token}"})
        if response.is_client_error:
            logger.debug("sign_out_rejected", status=response.status_code)

    def authorize_url(self, provider: str, redirect_to: str, code_challenge: str) -> str:
        """Build the provider URL the browser is sent to for OAuth sign-in."""
        query = urlencode(
            {
                "provider": provider,
                "redirect_to": redirect_to,
                "code_challenge": code_challenge,
                "code_challenge_method": "s256",
            }
        )
        return f"{self.core.config.auth_url.rstrip('/')}{API_PREFIX}/authorize?{query}"
