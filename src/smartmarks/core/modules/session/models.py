"""Session models shared by the identity provider client and the session guard."""

from typing import Any

from pydantic import BaseModel, Field


class AuthUser(BaseModel):
    """Identity verified by the identity provider."""

    id: str = Field(..., description="Provider user ID")
    email: str | None = Field(None, description="Primary email address")
    avatar_url: str | None = Field(None, description="Avatar image URL from the provider profile")

    @classmethod
    def from_provider(cls, data: dict[str, Any]) -> "AuthUser":
        """Build from a provider user payload (`user_metadata` holds the profile)."""
        metadata = data.get("user_metadata") or {}
        return cls(id=str(data["id"]), email=data.get("email"), avatar_url=metadata.get("avatar_url"))


class SessionTokens(BaseModel):
    """Access/refresh token pair issued by the identity provider."""

    access_token: str
    refresh_token: str
    expires_in: int = 3600
    user: AuthUser

    @classmethod
    def from_provider(cls, data: dict[str, Any]) -> "SessionTokens":
        return cls(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_in=int(data.get("expires_in") or 3600),
            user=AuthUser.from_provider(data["user"]),
        )


class SessionCredentials(BaseModel):
    """Tokens presented by the browser, as read from its cookies."""

    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.access_token and not self.refresh_token


class SessionCheck(BaseModel):
    """Outcome of verifying presented credentials.

    `refreshed` carries a new token pair that must be written back to the browser.
    `clear` means the presented tokens were rejected and should be removed.
    """

    user: AuthUser | None = None
    refreshed: SessionTokens | None = None
    clear: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None
